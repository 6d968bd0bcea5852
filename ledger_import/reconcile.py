"""
Reconcile imported transactions against the postings of one ledger account.

``match_transactions`` decides the verdict of every candidate and is shared by
preview and commit, so a preview always shows exactly what a commit writes.
"""
import logging
import typing

from .data_types import DuplicateRule
from .data_types import ImportCandidate
from .data_types import LedgerTransaction
from .data_types import MatchOutcome
from .data_types import PreviewEntry
from .data_types import ReconcileResult
from .data_types import Verdict
from .environment import VERBOSE_LOG_LEVEL
from .ledger import Ledger
from .ledger import TransactionError

# fields an import may fill on an existing posting, never overwrite
MERGE_FIELDS = ("imported_id", "imported_payee", "notes", "category")


class ReconciliationError(TransactionError):
    pass


def normalize_payee(name: str | None) -> str:
    return " ".join((name or "").lower().split())


def merge_changes(
    existing: LedgerTransaction,
    candidate: ImportCandidate,
    default_cleared: bool = True,
) -> dict[str, typing.Any]:
    txn = candidate.txn
    changes = {}
    for field in MERGE_FIELDS:
        value = getattr(txn, field)
        if value is not None and getattr(existing, field) is None:
            changes[field] = value
    if default_cleared and not existing.cleared:
        changes["cleared"] = True
    return changes


def is_fuzzy_match(
    ledger: Ledger,
    existing: LedgerTransaction,
    candidate: ImportCandidate,
    duplicate_rule: DuplicateRule,
) -> bool:
    txn = candidate.txn
    if existing.amount != txn.amount:
        return False
    if abs((existing.date - txn.date).days) > duplicate_rule.date_tolerance_days:
        return False
    # a different external id means a different posting
    if (
        existing.imported_id is not None
        and txn.imported_id is not None
        and existing.imported_id != txn.imported_id
    ):
        return False
    if not duplicate_rule.match_payee:
        return True
    payee = normalize_payee(txn.display_payee)
    existing_payees = {
        normalize_payee(ledger.payee_name(existing.payee)),
        normalize_payee(existing.imported_payee),
    }
    return payee in existing_payees


def match_transactions(
    ledger: Ledger,
    account_id: str,
    candidates: typing.Sequence[ImportCandidate],
    duplicate_rule: DuplicateRule | None = None,
    default_cleared: bool = True,
) -> list[MatchOutcome]:
    logger = logging.getLogger(__name__)
    if duplicate_rule is None:
        duplicate_rule = DuplicateRule()
    existing_txns = ledger.account_transactions(account_id)
    claimed: set[str] = set()
    outcomes: list[MatchOutcome] = []

    for candidate in candidates:
        if not candidate.selected:
            continue
        txn = candidate.txn
        match: LedgerTransaction | None = None

        if txn.imported_id is not None:
            same_id = [
                existing
                for existing in existing_txns
                if existing.imported_id == txn.imported_id
            ]
            if len(same_id) > 1:
                raise ReconciliationError(
                    f"Ambiguous match, {len(same_id)} postings carry imported id {txn.imported_id}"
                )
            if same_id and same_id[0].id not in claimed:
                match = same_id[0]

        if match is None:
            fuzzy = [
                existing
                for existing in existing_txns
                if existing.id not in claimed
                and is_fuzzy_match(ledger, existing, candidate, duplicate_rule)
            ]
            # closest date wins, ledger order breaks ties
            fuzzy.sort(key=lambda existing: abs((existing.date - txn.date).days))
            if fuzzy:
                match = fuzzy[0]

        if match is None:
            outcomes.append(
                MatchOutcome(
                    candidate=candidate,
                    verdict=Verdict.ADDED,
                    tombstone=candidate.tombstone,
                )
            )
            continue

        claimed.add(match.id)
        ignored = match.reconciled or not merge_changes(
            match, candidate, default_cleared=default_cleared
        )
        logger.log(
            VERBOSE_LOG_LEVEL,
            "Candidate %s matched posting %s (ignored=%s)",
            candidate.trx_id,
            match.id,
            ignored,
        )
        outcomes.append(
            MatchOutcome(
                candidate=candidate,
                verdict=Verdict.IGNORED if ignored else Verdict.MATCHED,
                existing=match,
                tombstone=candidate.tombstone,
            )
        )
    return outcomes


def insert_candidate(
    ledger: Ledger,
    account_id: str,
    candidate: ImportCandidate,
    default_cleared: bool = True,
) -> LedgerTransaction:
    txn = candidate.txn
    payee_id = None
    if txn.display_payee:
        payee_id = ledger.find_or_create_payee(txn.display_payee).id
    return ledger.insert_transaction(
        account=account_id,
        date=txn.date,
        amount=txn.amount,
        payee=payee_id,
        imported_payee=txn.imported_payee,
        imported_id=txn.imported_id,
        notes=txn.notes,
        category=txn.category,
        cleared=default_cleared,
    )


def reconcile_transactions(
    ledger: Ledger,
    account_id: str,
    candidates: typing.Sequence[ImportCandidate],
    dry_run: bool = False,
    duplicate_rule: DuplicateRule | None = None,
    default_cleared: bool = True,
) -> ReconcileResult:
    logger = logging.getLogger(__name__)
    outcomes = match_transactions(
        ledger,
        account_id,
        candidates,
        duplicate_rule=duplicate_rule,
        default_cleared=default_cleared,
    )
    result = ReconcileResult(outcomes=outcomes)

    for outcome in outcomes:
        candidate = outcome.candidate
        candidate.existing = outcome.existing is not None
        candidate.ignored = outcome.verdict == Verdict.IGNORED

    if dry_run:
        result.updated_preview = [
            PreviewEntry(
                transaction=outcome.candidate,
                existing=outcome.existing,
                ignored=outcome.verdict == Verdict.IGNORED,
                tombstone=outcome.tombstone,
            )
            for outcome in outcomes
        ]
        return result

    for outcome in outcomes:
        candidate = outcome.candidate
        existing = outcome.existing
        if existing is None:
            if outcome.tombstone:
                # nothing to delete
                continue
            inserted = insert_candidate(ledger, account_id, candidate, default_cleared)
            outcome.ledger_id = inserted.id
            result.added.append(inserted.id)
        elif outcome.tombstone:
            ledger.update_transaction(existing.id, tombstone=True)
            outcome.ledger_id = existing.id
            result.updated.append(existing.id)
        elif candidate.force_add:
            inserted = insert_candidate(ledger, account_id, candidate, default_cleared)
            outcome.ledger_id = inserted.id
            result.added.append(inserted.id)
        elif outcome.verdict == Verdict.MATCHED:
            changes = merge_changes(existing, candidate, default_cleared=default_cleared)
            ledger.update_transaction(existing.id, **changes)
            outcome.ledger_id = existing.id
            result.updated.append(existing.id)

    logger.info(
        "Reconciled account %s: %s added, %s updated, %s ignored",
        account_id,
        len(result.added),
        len(result.updated),
        sum(1 for outcome in outcomes if outcome.verdict == Verdict.IGNORED),
    )
    return result


def sort_for_display(entries: typing.Iterable[PreviewEntry]) -> list[PreviewEntry]:
    """New postings first, matched and ignored ones last, otherwise stable"""
    return sorted(entries, key=lambda entry: entry.existing is not None)
