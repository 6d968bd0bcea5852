import json
import pathlib
import typing

import pydantic
import pytest

from ledger_import.data_types import DuplicateRule
from ledger_import.data_types import ImportSettings
from ledger_import.settings import ImportContext
from ledger_import.settings import load_payee_mapping
from ledger_import.settings import load_settings
from ledger_import.settings import save_settings


def test_load_settings_defaults(tmp_path: pathlib.Path):
    assert load_settings(tmp_path / "import_settings.json") == ImportSettings()


def test_settings_round_trip(tmp_path: pathlib.Path):
    path = tmp_path / "import_settings.json"
    settings = ImportSettings(
        migros_account="Migros Privatkonto",
        cash_account="Kasse",
        duplicate_rule=DuplicateRule(date_tolerance_days=2),
    )
    save_settings(path, settings)
    assert json.loads(path.read_text())["migros_account"] == "Migros Privatkonto"
    assert load_settings(path) == settings


def test_load_settings_invalid(
    tmp_path: pathlib.Path, construct_files: typing.Callable
):
    construct_files(
        tmp_path,
        {"import_settings.json": '{"duplicate_rule": {"date_tolerance_days": -1}}'},
    )
    with pytest.raises(pydantic.ValidationError):
        load_settings(tmp_path / "import_settings.json")


def test_import_context_from_workdir(
    tmp_path: pathlib.Path, construct_files: typing.Callable
):
    construct_files(
        tmp_path,
        {
            "import_settings.json": '{"migros_account": "Migros"}',
            "payee_category_mapping.json": '{"Migros": "Lebensmittel:Einkauf"}',
        },
    )
    context = ImportContext.from_workdir(tmp_path)
    assert context.settings.migros_account == "Migros"
    assert context.payee_mapping == {"Migros": "Lebensmittel:Einkauf"}

    context.remember_categories({"Café Zürich": "Freizeit:Restaurant"})
    assert context.payee_mapping["Café Zürich"] == "Freizeit:Restaurant"
    assert load_payee_mapping(tmp_path / "payee_category_mapping.json") == {
        "Migros": "Lebensmittel:Einkauf",
        "Café Zürich": "Freizeit:Restaurant",
    }


def test_remember_categories_nothing_new(tmp_path: pathlib.Path):
    context = ImportContext.from_workdir(tmp_path)
    context.remember_categories({})
    assert not (tmp_path / "payee_category_mapping.json").exists()
