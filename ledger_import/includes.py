import logging
import pathlib

import yaml
from pydantic import TypeAdapter

from .data_types import ImportRule
from .data_types import IncludeRule
from .data_types import RulesDoc

RuleListAdapter = TypeAdapter(list[ImportRule | IncludeRule])

GLOB_CHARS = frozenset("*?[")


class IncludeError(ValueError):
    pass


def expand_include(workdir_path: pathlib.Path, pattern: str) -> list[pathlib.Path]:
    """Files named by one include entry, glob patterns in sorted order"""
    if GLOB_CHARS.intersection(pattern):
        return sorted(workdir_path.glob(pattern))
    path = workdir_path / pattern
    if not path.exists():
        raise IncludeError(f"Included rules file {pattern} does not exist")
    return [path]


def load_includes(
    workdir_path: pathlib.Path,
    include_path: pathlib.Path,
    chain: tuple[pathlib.Path, ...] = (),
) -> list[ImportRule]:
    include_path = include_path.resolve()
    if include_path in chain:
        raise IncludeError(
            "Include cycle: " + " -> ".join(str(path) for path in chain + (include_path,))
        )
    with include_path.open("rt", encoding="utf-8") as fo:
        entries = RuleListAdapter.validate_python(yaml.safe_load(fo) or [])
    return resolve_includes(workdir_path, entries, chain=chain + (include_path,))


def resolve_includes(
    workdir_path: pathlib.Path,
    rules: list[ImportRule | IncludeRule],
    chain: tuple[pathlib.Path, ...] = (),
) -> list[ImportRule]:
    resolved: list[ImportRule] = []
    for rule in rules:
        if isinstance(rule, ImportRule):
            resolved.append(rule)
            continue
        patterns = [rule.include] if isinstance(rule.include, str) else rule.include
        for pattern in patterns:
            for path in expand_include(workdir_path, pattern):
                resolved.extend(load_includes(workdir_path, path, chain=chain))
    return resolved


def load_rules(workdir_path: pathlib.Path, rules_path: pathlib.Path) -> list[ImportRule]:
    logger = logging.getLogger(__name__)
    if not rules_path.exists():
        logger.debug("No import rules at %s", rules_path)
        return []
    with rules_path.open("rt", encoding="utf-8") as fo:
        doc = RulesDoc.model_validate(yaml.safe_load(fo) or {})
    rules = resolve_includes(workdir_path, doc.rules, chain=(rules_path.resolve(),))
    logger.info("Loaded %s import rules from %s", len(rules), rules_path)
    return rules
