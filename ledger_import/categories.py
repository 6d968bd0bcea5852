import logging
import typing

from . import constants
from .data_types import CategorySelection
from .data_types import NormalizedTransaction
from .data_types import PayeeMatch
from .ledger import Ledger

PayeeCategoryMapping = dict[str, str]


def word_set(value: str) -> set[str]:
    return set(value.lower().split())


def jaccard_similarity(left: str, right: str) -> float:
    left_words = word_set(left)
    right_words = word_set(right)
    if not left_words or not right_words:
        return 0.0
    return len(left_words & right_words) / len(left_words | right_words)


def lookup_mapping_key(
    payee: str,
    mapping: PayeeCategoryMapping,
    threshold: float = constants.SIMILARITY_THRESHOLD,
) -> str | None:
    """Find the ``Group:Category`` for a payee.

    Exact match first, then a case-insensitive one, then the mapped payee with
    the best word-set similarity at or above ``threshold``. On equal scores the
    first mapping entry wins.
    """
    if not payee or not mapping:
        return None
    category_key = mapping.get(payee)
    if category_key:
        return category_key

    payee_lower = payee.lower()
    for mapped_payee, category_key in mapping.items():
        if mapped_payee.lower() == payee_lower:
            return category_key

    best_score = 0.0
    best_key = None
    for mapped_payee, category_key in mapping.items():
        score = jaccard_similarity(payee, mapped_payee)
        if score > best_score and score >= threshold:
            best_score = score
            best_key = category_key
    return best_key


def split_category_key(category_key: str) -> tuple[str, str] | None:
    group_name, _, category_name = category_key.partition(":")
    if not group_name or not category_name:
        return None
    return group_name, category_name


def propose_category(
    ledger: Ledger, payee: str, mapping: PayeeCategoryMapping
) -> str | None:
    logger = logging.getLogger(__name__)
    category_key = lookup_mapping_key(payee, mapping)
    if category_key is None:
        return None
    names = split_category_key(category_key)
    if names is None:
        logger.warning("Ignoring malformed category %r for payee %r", category_key, payee)
        return None
    category = ledger.find_category(*names)
    if category is None:
        logger.warning("Category %s for payee %r does not exist", category_key, payee)
        return None
    return category.id


def match_payees(
    transactions: typing.Iterable[NormalizedTransaction],
    mapping: PayeeCategoryMapping,
) -> list[PayeeMatch]:
    matches: dict[str, PayeeMatch] = {}
    for txn in transactions:
        payee = txn.display_payee
        if not payee or payee in matches:
            continue
        proposed = lookup_mapping_key(payee, mapping)
        matches[payee] = PayeeMatch(
            payee=payee,
            proposed_category=proposed,
            has_match=proposed is not None,
            is_expense=txn.amount < 0,
        )
    return list(matches.values())


def category_selections(
    ledger: Ledger,
    transactions: typing.Sequence[NormalizedTransaction],
    mapping: PayeeCategoryMapping,
) -> list[CategorySelection]:
    """Pair the category each payee ended up with and the one the mapping proposed"""
    matches = {match.payee: match for match in match_payees(transactions, mapping)}
    selections: list[CategorySelection] = []
    for txn in transactions:
        match = matches.get(txn.display_payee)
        if match is None:
            continue
        selections.append(
            CategorySelection(
                payee=match.payee,
                proposed_category=match.proposed_category,
                selected_category=ledger.category_key(txn.category),
                has_match=match.has_match,
                is_expense=match.is_expense,
            )
        )
    return selections


def collect_mappings_to_save(
    selections: typing.Iterable[CategorySelection],
    mapping: PayeeCategoryMapping,
) -> PayeeCategoryMapping:
    """Mapping entries worth persisting: new payees and changed categories.

    The first selection of a payee wins.
    """
    to_save: PayeeCategoryMapping = {}
    for selection in selections:
        if selection.payee in to_save or not selection.selected_category:
            continue
        if (
            not selection.has_match
            or selection.selected_category != selection.proposed_category
        ) and mapping.get(selection.payee) != selection.selected_category:
            to_save[selection.payee] = selection.selected_category
    return to_save


def learn_categories_from_ledger(ledger: Ledger, account_ids: typing.Iterable[str]) -> PayeeCategoryMapping:
    learned: PayeeCategoryMapping = {}
    for account_id in account_ids:
        for txn in ledger.account_transactions(account_id):
            if txn.category is None or txn.transferred_id is not None:
                continue
            payee = ledger.payee_name(txn.payee) or txn.imported_payee
            category_key = ledger.category_key(txn.category)
            if not payee or category_key is None or payee in learned:
                continue
            learned[payee] = category_key
    return learned
