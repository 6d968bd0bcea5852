import dataclasses
import json
import logging
import pathlib
import typing

import yaml
from pydantic import TypeAdapter

from . import constants
from .data_types import ImportSettings

PayeeMappingAdapter = TypeAdapter(dict[str, str])


def load_settings(path: pathlib.Path) -> ImportSettings:
    logger = logging.getLogger(__name__)
    if not path.exists():
        logger.debug("No settings file at %s, using defaults", path)
        return ImportSettings()
    # JSON is valid YAML
    with path.open("rt", encoding="utf-8") as fo:
        payload = yaml.safe_load(fo)
    return ImportSettings.model_validate(payload or {})


def save_settings(path: pathlib.Path, settings: ImportSettings):
    with path.open("wt", encoding="utf-8") as fo:
        fo.write(settings.model_dump_json(indent=2))


def load_payee_mapping(path: pathlib.Path) -> dict[str, str]:
    if not path.exists():
        return {}
    with path.open("rt", encoding="utf-8") as fo:
        payload = yaml.safe_load(fo)
    return PayeeMappingAdapter.validate_python(payload or {})


def save_payee_mapping(path: pathlib.Path, mapping: dict[str, str]):
    with path.open("wt", encoding="utf-8") as fo:
        json.dump(mapping, fo, indent=2, ensure_ascii=False)


@dataclasses.dataclass
class ImportContext:
    """Everything an import reads besides the ledger and the file itself"""

    settings: ImportSettings = dataclasses.field(default_factory=ImportSettings)
    payee_mapping: dict[str, str] = dataclasses.field(default_factory=dict)
    # persists new payee mapping entries, merged into the snapshot
    save_mapping: typing.Callable[[dict[str, str]], None] | None = None

    @classmethod
    def from_workdir(cls, workdir: pathlib.Path) -> "ImportContext":
        settings_path = workdir / constants.SETTINGS_FILE
        mapping_path = workdir / constants.PAYEE_MAPPING_FILE

        def save_mapping(entries: dict[str, str]):
            mapping = load_payee_mapping(mapping_path)
            mapping.update(entries)
            save_payee_mapping(mapping_path, mapping)

        return cls(
            settings=load_settings(settings_path),
            payee_mapping=load_payee_mapping(mapping_path),
            save_mapping=save_mapping,
        )

    def remember_categories(self, entries: dict[str, str]):
        logger = logging.getLogger(__name__)
        if not entries:
            return
        self.payee_mapping.update(entries)
        if self.save_mapping is not None:
            self.save_mapping(entries)
        logger.info("Saved %s payee category mappings", len(entries))
