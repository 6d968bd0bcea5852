import datetime
import logging

from . import constants
from .data_types import BalanceCorrection
from .ledger import Ledger
from .templates import as_money
from .templates import make_environment


def check_and_correct(
    ledger: Ledger,
    account_id: str,
    expected_balance: int,
    dry_run: bool = False,
    category_id: str | None = None,
    notes_template: str = constants.DEFAULT_CORRECTION_NOTES_TEMPLATE,
    currency: str = constants.HOME_CURRENCY,
    today: datetime.date | None = None,
) -> BalanceCorrection:
    """Compare the account balance with the balance reported by the bank and
    book the difference as a correction posting unless ``dry_run``."""
    logger = logging.getLogger(__name__)
    actual_balance = ledger.account_balance(account_id)
    difference = expected_balance - actual_balance

    logger.info(
        "Balance check: bank %s %s, actual %s %s, difference %s %s",
        as_money(expected_balance),
        currency,
        as_money(actual_balance),
        currency,
        as_money(difference),
        currency,
    )
    if difference == 0 or dry_run:
        return BalanceCorrection(
            actual_balance=actual_balance,
            expected_balance=expected_balance,
            difference=difference,
            correction_created=False,
        )

    payee = ledger.find_or_create_payee(constants.CORRECTION_PAYEE_NAME)
    notes = (
        make_environment()
        .from_string(notes_template)
        .render(expected=expected_balance, actual=actual_balance, currency=currency)
    )
    correction = ledger.insert_transaction(
        account=account_id,
        date=today if today is not None else datetime.date.today(),
        amount=difference,
        payee=payee.id,
        category=category_id,
        notes=notes,
        cleared=False,
    )
    logger.info("Booked balance correction %s of %s %s", correction.id, as_money(difference), currency)
    return BalanceCorrection(
        actual_balance=actual_balance,
        expected_balance=expected_balance,
        difference=difference,
        correction_created=True,
        correction_id=correction.id,
    )
