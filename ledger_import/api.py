import dataclasses
import datetime
import logging
import typing

from .balance import check_and_correct
from .categories import propose_category
from .categories import split_category_key
from .data_types import BalanceCheckResult
from .data_types import DuplicateRule
from .data_types import ImportCandidate
from .data_types import ImportResult
from .data_types import NormalizedTransaction
from .data_types import RouteResult
from .data_types import make_candidates
from .ledger import Ledger
from .ledger import TransactionError
from .reconcile import reconcile_transactions
from .reconcile import sort_for_display
from .router import RouteOptions
from .router import route_and_import
from .settings import ImportContext


@dataclasses.dataclass
class ImportOptions:
    default_cleared: bool = True
    duplicate_rule: DuplicateRule | None = None


def ensure_candidates(
    transactions: typing.Sequence[NormalizedTransaction | ImportCandidate],
) -> list[ImportCandidate]:
    if transactions and isinstance(transactions[0], ImportCandidate):
        return list(transactions)
    return make_candidates(transactions)


def import_transactions(
    ledger: Ledger,
    account_id: str,
    transactions: typing.Sequence[NormalizedTransaction | ImportCandidate],
    is_preview: bool = False,
    opts: ImportOptions | None = None,
) -> ImportResult:
    logger = logging.getLogger(__name__)
    if opts is None:
        opts = ImportOptions()
    candidates = ensure_candidates(transactions)
    try:
        reconciled = reconcile_transactions(
            ledger,
            account_id,
            candidates,
            dry_run=is_preview,
            duplicate_rule=opts.duplicate_rule,
            default_cleared=opts.default_cleared,
        )
    except TransactionError as exc:
        logger.error("Import into account %s failed: %s", account_id, exc)
        return ImportResult(errors=[{"message": str(exc)}])
    return ImportResult(
        added=reconciled.added,
        updated=reconciled.updated,
        updated_preview=sort_for_display(reconciled.updated_preview),
        outcomes=reconciled.outcomes,
    )


def apply_payee_mapping(
    ledger: Ledger, candidates: typing.Iterable[ImportCandidate], context: ImportContext
) -> int:
    applied = 0
    if not context.payee_mapping:
        return applied
    for candidate in candidates:
        if candidate.txn.category is not None:
            continue
        category_id = propose_category(
            ledger, candidate.txn.display_payee, context.payee_mapping
        )
        if category_id is not None:
            candidate.txn = dataclasses.replace(candidate.txn, category=category_id)
            applied += 1
    return applied


def import_configured_account(
    ledger: Ledger,
    transactions: typing.Sequence[NormalizedTransaction | ImportCandidate],
    is_preview: bool,
    context: ImportContext,
    opts: ImportOptions | None = None,
) -> ImportResult:
    """Import into the bank account named in the import settings"""
    logger = logging.getLogger(__name__)
    account_name = context.settings.migros_account
    if not account_name:
        return ImportResult(
            errors=[
                {
                    "message": "Migros account not configured. Please configure import settings."
                }
            ]
        )

    account = ledger.find_account_by_name(account_name)
    if account is None:
        if is_preview:
            return ImportResult(account_used=account_name)
        account = ledger.find_or_create_account(account_name)

    candidates = ensure_candidates(transactions)
    categories_applied = apply_payee_mapping(ledger, candidates, context)
    if opts is None:
        opts = ImportOptions(duplicate_rule=context.settings.duplicate_rule)
    result = import_transactions(ledger, account.id, candidates, is_preview, opts)
    result.account_used = account_name
    result.categories_applied = categories_applied
    logger.info(
        "Imported into %s: %s added, %s updated, %s categorized",
        account_name,
        len(result.added),
        len(result.updated),
        categories_applied,
    )
    return result


def import_multi_currency(
    ledger: Ledger,
    transactions: typing.Sequence[NormalizedTransaction | ImportCandidate],
    is_preview: bool,
    context: ImportContext,
    opts: RouteOptions | None = None,
) -> RouteResult:
    logger = logging.getLogger(__name__)
    candidates = ensure_candidates(transactions)
    try:
        return route_and_import(ledger, candidates, is_preview, context, opts)
    except TransactionError as exc:
        logger.error("Multi-currency import failed: %s", exc)
        return RouteResult(errors=[{"message": str(exc)}])


def balance_check(
    ledger: Ledger,
    expected_total: int,
    context: ImportContext,
    today: datetime.date | None = None,
) -> BalanceCheckResult:
    """Compare the provider's home currency account with the bank total.

    A correction is only booked when a correction category is configured,
    otherwise the difference is reported back for the caller to decide.
    """
    logger = logging.getLogger(__name__)
    settings = context.settings
    account_name = f"{settings.provider_name} {settings.home_currency}"
    account = ledger.find_account_by_name(account_name)
    if account is None:
        return BalanceCheckResult(
            expected_balance=expected_total,
            success=False,
            error=f"Account {account_name} not found",
        )

    category_id = None
    if settings.revolut_differenz_category:
        names = split_category_key(settings.revolut_differenz_category)
        category = ledger.find_category(*names) if names is not None else None
        if category is None:
            return BalanceCheckResult(
                expected_balance=expected_total,
                account_balance=ledger.account_balance(account.id),
                success=False,
                error=f"Category {settings.revolut_differenz_category} not found",
            )
        category_id = category.id
    else:
        logger.info("No correction category configured, reporting the difference only")

    correction = check_and_correct(
        ledger,
        account.id,
        expected_total,
        dry_run=category_id is None,
        category_id=category_id,
        currency=settings.home_currency,
        today=today,
    )
    return BalanceCheckResult(
        difference=correction.difference,
        account_balance=correction.actual_balance,
        expected_balance=expected_total,
        correction_booked=correction.correction_created,
    )
