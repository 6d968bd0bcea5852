import dataclasses
import logging
import re
import typing

from jinja2.sandbox import SandboxedEnvironment

from .categories import split_category_key
from .data_types import ActionDelete
from .data_types import ActionIgnore
from .data_types import ActionSet
from .data_types import ImportCandidate
from .data_types import ImportRule
from .data_types import NormalizedTransaction
from .data_types import StrContainsMatch
from .data_types import StrExactMatch
from .data_types import StrMatch
from .data_types import StrOneOfMatch
from .data_types import StrPrefixMatch
from .data_types import StrSuffixMatch
from .data_types import TxnMatchRule
from .ledger import Ledger


def match_str(pattern: StrMatch | None, value: str | None) -> bool:
    if value is None:
        return False

    if isinstance(pattern, str):
        return re.match(pattern, value) is not None
    elif isinstance(pattern, StrExactMatch):
        return value == pattern.equals
    elif isinstance(pattern, StrPrefixMatch):
        return value.startswith(pattern.prefix)
    elif isinstance(pattern, StrSuffixMatch):
        return value.endswith(pattern.suffix)
    elif isinstance(pattern, StrContainsMatch):
        return pattern.contains in value
    elif isinstance(pattern, StrOneOfMatch):
        if pattern.ignore_case:
            return value.lower() in {item.lower() for item in pattern.one_of}
        return value in pattern.one_of
    else:
        raise ValueError(f"Unexpected str match type {type(pattern)}")


def txn_field(txn: NormalizedTransaction, key: str) -> str | None:
    if key == "kind":
        return txn.extension.kind.value if txn.extension is not None else None
    return getattr(txn, key)


def match_transaction(txn: NormalizedTransaction, rule: TxnMatchRule) -> bool:
    for key in TxnMatchRule.model_fields:
        pattern = getattr(rule, key)
        if pattern is None:
            continue
        if not match_str(pattern, txn_field(txn, key)):
            return False
    return True


def render_context(txn: NormalizedTransaction) -> dict[str, typing.Any]:
    ctx = dataclasses.asdict(txn)
    ctx["kind"] = txn_field(txn, "kind")
    ctx["payee"] = txn.display_payee
    return ctx


def apply_set(
    template_env: SandboxedEnvironment,
    ledger: Ledger | None,
    action: ActionSet,
    candidate: ImportCandidate,
):
    logger = logging.getLogger(__name__)
    ctx = render_context(candidate.txn)
    changes = {}
    if action.payee_name is not None:
        changes["payee_name"] = template_env.from_string(action.payee_name).render(**ctx)
    if action.notes is not None:
        changes["notes"] = template_env.from_string(action.notes).render(**ctx)
    if action.category is not None:
        names = split_category_key(action.category)
        category = ledger.find_category(*names) if ledger is not None and names else None
        if category is None:
            logger.warning(
                "Category %s of import rule not found, leaving %s uncategorized",
                action.category,
                candidate.trx_id,
            )
        else:
            changes["category"] = category.id
    candidate.txn = dataclasses.replace(candidate.txn, **changes)


def apply_rules(
    template_env: SandboxedEnvironment,
    rules: typing.Sequence[ImportRule],
    candidates: typing.Iterable[ImportCandidate],
    ledger: Ledger | None = None,
) -> int:
    """Apply the first matching rule to every candidate, returns how many matched"""
    logger = logging.getLogger(__name__)
    matched_count = 0
    for candidate in candidates:
        for rule in rules:
            if not match_transaction(candidate.txn, rule.match):
                continue
            matched_count += 1
            logger.debug(
                "Rule %s matched transaction %s at line %s",
                rule.name,
                candidate.trx_id,
                candidate.txn.lineno,
            )
            for action in rule.actions:
                if isinstance(action, ActionSet):
                    apply_set(template_env, ledger, action, candidate)
                elif isinstance(action, ActionIgnore):
                    candidate.selected = False
                elif isinstance(action, ActionDelete):
                    candidate.tombstone = True
                else:
                    raise ValueError(f"Unexpected action type {type(action)}")
            break
    return matched_count
