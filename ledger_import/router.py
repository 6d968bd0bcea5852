"""
Multi-currency routing.

Records are partitioned by currency and each partition is reconciled into its
own ``<provider> <CUR>`` account. Transfer records (top-ups, bank transfers,
ATM withdrawals, exchanges) get a linked counter posting once every partition
has been committed.
"""
import dataclasses
import logging
import typing

from . import constants
from .categories import propose_category
from .data_types import CurrencyImport
from .data_types import ImportCandidate
from .data_types import MatchOutcome
from .data_types import NormalizedTransaction
from .data_types import RouteResult
from .data_types import TransactionKind
from .data_types import Verdict
from .heuristics import parse_exchange_amount
from .ledger import Ledger
from .reconcile import ReconciliationError
from .reconcile import reconcile_transactions
from .settings import ImportContext
from .templates import make_environment


@dataclasses.dataclass
class RouteOptions:
    create_transfers: bool = True
    default_cleared: bool = True
    # override the accounts configured in the import settings
    bank_account_name: str | None = None
    cash_account_name: str | None = None
    transfer_notes_template: str = constants.DEFAULT_TRANSFER_NOTES_TEMPLATE


@dataclasses.dataclass
class AddedPosting:
    ledger_id: str
    txn: NormalizedTransaction
    account_id: str
    currency: str


def provider_account_name(currency: str, context: ImportContext) -> str:
    return f"{context.settings.provider_name} {currency.upper()}"


def partition_by_currency(
    candidates: typing.Iterable[ImportCandidate], home_currency: str
) -> dict[str, list[ImportCandidate]]:
    partitions: dict[str, list[ImportCandidate]] = {}
    for candidate in candidates:
        currency = (candidate.txn.currency or home_currency).upper()
        partitions.setdefault(currency, []).append(candidate)
    return partitions


def transfer_target(
    txn: NormalizedTransaction, bank_account: str | None, cash_account: str | None
) -> str | None:
    if txn.extension is None:
        return None
    kind = txn.extension.kind
    if kind in (TransactionKind.TOPUP, TransactionKind.SWIFT_TRANSFER):
        return bank_account or None
    if kind == TransactionKind.ATM:
        return cash_account or None
    if kind == TransactionKind.EXCHANGE:
        return txn.extension.transfer_account
    return None


def counter_amount(txn: NormalizedTransaction) -> int:
    if txn.extension is not None and txn.extension.kind == TransactionKind.EXCHANGE:
        return parse_exchange_amount(txn.imported_payee or txn.payee_name or "", txn.amount)
    return -txn.amount


def link_transfers(
    ledger: Ledger,
    added: typing.Sequence[AddedPosting],
    context: ImportContext,
    options: RouteOptions,
    result: RouteResult,
):
    logger = logging.getLogger(__name__)
    bank_account = options.bank_account_name or context.settings.revolut_bank_account
    cash_account = options.cash_account_name or context.settings.cash_account
    template = make_environment().from_string(options.transfer_notes_template)

    for posting in added:
        txn = posting.txn
        target_name = transfer_target(txn, bank_account, cash_account)
        if target_name is None:
            if txn.extension is not None and txn.extension.kind.is_transfer:
                logger.warning(
                    "No transfer target for %s posting %s, leaving it unlinked",
                    txn.extension.kind.value,
                    posting.ledger_id,
                )
            continue

        target = ledger.find_account_by_name(target_name)
        if target is None:
            target = ledger.find_or_create_account(
                target_name, offbudget=target_name == cash_account
            )
            result.accounts_created.append(target_name)
        transfer_payee = ledger.transfer_payee(target.id)

        amount = counter_amount(txn)
        counter = ledger.insert_transaction(
            account=target.id,
            date=txn.date,
            amount=amount,
            payee=transfer_payee.id if transfer_payee is not None else None,
            notes=template.render(payee=txn.imported_payee or txn.payee_name or ""),
            cleared=False,
            transferred_id=posting.ledger_id,
        )
        ledger.update_transaction(posting.ledger_id, transferred_id=counter.id)
        result.transfers_linked += 1
        logger.info(
            "Linked transfer %s -> %s (%s %s)",
            posting.account_id,
            target_name,
            amount,
            posting.currency,
        )


def route_and_import(
    ledger: Ledger,
    candidates: typing.Sequence[ImportCandidate],
    dry_run: bool,
    context: ImportContext,
    options: RouteOptions | None = None,
) -> RouteResult:
    logger = logging.getLogger(__name__)
    if options is None:
        options = RouteOptions()
    result = RouteResult()
    home_currency = context.settings.home_currency
    partitions = partition_by_currency(candidates, home_currency)
    logger.info(
        "Routing %s transactions across %s currencies: %s",
        len(candidates),
        len(partitions),
        ", ".join(partitions),
    )

    added: list[AddedPosting] = []
    for currency, partition in partitions.items():
        account_name = provider_account_name(currency, context)
        account = ledger.find_account_by_name(account_name)
        if account is None:
            result.accounts_created.append(account_name)
            if dry_run:
                # previewing against an account that does not exist yet
                result.imported[currency] = CurrencyImport()
                continue
            account = ledger.find_or_create_account(account_name)

        originals: dict[str, NormalizedTransaction] = {}
        by_id: dict[str, ImportCandidate] = {}
        routed: list[ImportCandidate] = []
        for candidate in partition:
            by_id[candidate.trx_id] = candidate
            originals[candidate.trx_id] = candidate.txn
            txn = candidate.txn
            if txn.category is None and context.payee_mapping:
                category_id = propose_category(
                    ledger, txn.display_payee, context.payee_mapping
                )
                if category_id is not None:
                    txn = dataclasses.replace(txn, category=category_id)
                    originals[candidate.trx_id] = txn
                    result.categories_applied += 1
            # the account carries the currency, the caller's candidate stays untouched
            routed.append(
                dataclasses.replace(
                    candidate,
                    txn=dataclasses.replace(txn, currency=None, extension=None),
                )
            )

        try:
            reconciled = reconcile_transactions(
                ledger,
                account.id,
                routed,
                dry_run=dry_run,
                duplicate_rule=context.settings.duplicate_rule,
                default_cleared=options.default_cleared,
            )
        except ReconciliationError as exc:
            logger.error("Failed to import %s transactions: %s", currency, exc)
            result.errors.append({"message": str(exc)})
            continue

        result.imported[currency] = CurrencyImport(
            added=reconciled.added, updated=reconciled.updated
        )
        for outcome in reconciled.outcomes:
            original = by_id[outcome.candidate.trx_id]
            original.existing = outcome.candidate.existing
            original.ignored = outcome.candidate.ignored
            outcome.candidate = original
        result.outcomes.extend(reconciled.outcomes)
        added.extend(
            AddedPosting(
                ledger_id=outcome.ledger_id,
                txn=originals[outcome.candidate.trx_id],
                account_id=account.id,
                currency=currency,
            )
            for outcome in reconciled.outcomes
            if is_new_posting(outcome)
        )
        logger.info(
            "%s %s: %s added, %s updated",
            account_name,
            currency,
            len(reconciled.added),
            len(reconciled.updated),
        )

    if not dry_run and options.create_transfers and added:
        link_transfers(ledger, added, context, options, result)
    return result


def is_new_posting(outcome: MatchOutcome) -> bool:
    if outcome.ledger_id is None:
        return False
    return outcome.verdict == Verdict.ADDED or (
        outcome.candidate.force_add and not outcome.tombstone
    )
