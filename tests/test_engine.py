import json
import pathlib
import shutil
import typing

import pytest

from ledger_import.engine import ImportEngine
from ledger_import.ledger import MemoryLedger
from tests.conftest import FIXTURE_FOLDER


@pytest.fixture
def workdir(tmp_path: pathlib.Path, construct_files: typing.Callable) -> pathlib.Path:
    construct_files(
        tmp_path,
        {
            "import_settings.json": '{"migros_account": "Migros", "cash_account": "Kasse"}',
            "payee_category_mapping.json": '{"Lohn Mai": "Einkommen:Lohn"}',
        },
    )
    for name in ("migros.csv", "revolut.csv"):
        shutil.copy(FIXTURE_FOLDER / name, tmp_path / name)
    return tmp_path


def load_ledger(workdir: pathlib.Path) -> MemoryLedger:
    return MemoryLedger.load(workdir / "ledger.yaml")


def test_engine_instantiate(workdir: pathlib.Path):
    engine = ImportEngine(workdir=str(workdir), log_level="info")
    assert engine.context.settings.migros_account == "Migros"
    assert engine.ledger.doc.accounts == []


def test_engine_run_migros(workdir: pathlib.Path):
    engine = ImportEngine(workdir=str(workdir))
    engine.ledger.add_category("Einkommen", "Lohn", is_income=True)
    result = engine.run_import(workdir / "migros.csv")
    assert result.account_used == "Migros"
    assert len(result.added) == 3
    assert result.categories_applied == 1

    ledger = load_ledger(workdir)
    account = ledger.find_account_by_name("Migros")
    assert [txn.amount for txn in ledger.account_transactions(account.id)] == [
        -4530,
        500000,
        2500,
    ]

    again = ImportEngine(workdir=str(workdir)).run_import(workdir / "migros.csv")
    assert again.added == []
    assert len(load_ledger(workdir).doc.transactions) == 3


def test_engine_run_preview(workdir: pathlib.Path):
    engine = ImportEngine(workdir=str(workdir))
    result = engine.run_import(workdir / "revolut.csv", preview=True)
    assert result.accounts_created == ["Revolut CHF", "Revolut EUR"]
    assert not (workdir / "ledger.yaml").exists()


def test_engine_run_revolut_with_balance(workdir: pathlib.Path):
    engine = ImportEngine(workdir=str(workdir))
    result = engine.run_import(workdir / "revolut.csv", expected_balance=430)
    assert result.errors == []
    assert result.transfers_linked == 2

    # without a correction category the difference is only reported
    ledger = load_ledger(workdir)
    account = ledger.find_account_by_name("Revolut CHF")
    assert ledger.account_balance(account.id) == 470
    assert engine.balance_check(430).difference == -40
    assert ledger.find_account_by_name("Kasse").offbudget


def test_engine_run_revolut_with_correction(
    workdir: pathlib.Path, construct_files: typing.Callable
):
    construct_files(
        workdir,
        {
            "import_settings.json": '{"cash_account": "Kasse", "revolut_differenz_category": "Diverses:Differenz"}'
        },
    )
    engine = ImportEngine(workdir=str(workdir))
    engine.ledger.add_category("Diverses", "Differenz")
    engine.run_import(workdir / "revolut.csv", expected_balance=430)

    ledger = load_ledger(workdir)
    account = ledger.find_account_by_name("Revolut CHF")
    assert ledger.account_balance(account.id) == 430
    correction = ledger.account_transactions(account.id)[-1]
    assert correction.amount == -40
    assert ledger.category_key(correction.category) == "Diverses:Differenz"
    assert ledger.find_account_by_name("Kasse").offbudget


def test_engine_run_unknown_account(
    workdir: pathlib.Path, construct_files: typing.Callable
):
    construct_files(
        workdir, {"export.csv": "date,payee,amount\n2024-01-15,Shop,-12.50\n"}
    )
    engine = ImportEngine(workdir=str(workdir))
    parse_options = engine.parse_options(field_mapping={})
    with pytest.raises(ValueError):
        engine.run_import(workdir / "export.csv", parse_options=parse_options)

    result = engine.run_import(
        workdir / "export.csv", account_name="Giro", parse_options=parse_options
    )
    assert len(result.added) == 1
    ledger = load_ledger(workdir)
    assert ledger.find_account_by_name("Giro") is not None


def test_engine_run_with_rules(workdir: pathlib.Path, construct_files: typing.Callable):
    construct_files(
        workdir,
        {
            ".ledger_import": {
                "rules.yaml": """
rules:
- match:
    notes:
      contains: TWINT Belastung
  actions:
  - type: ignore
- match:
    payee_name:
      equals: Lohn Mai
  actions:
  - type: set
    payee_name: Arbeitgeber AG
"""
            }
        },
    )
    engine = ImportEngine(workdir=str(workdir))
    result = engine.run_import(workdir / "migros.csv")
    assert len(result.added) == 2
    ledger = load_ledger(workdir)
    assert {ledger.payee_name(txn.payee) for txn in ledger.doc.transactions} == {
        "Arbeitgeber AG",
        "Muster, Hans",
    }


def test_engine_learn_categories(workdir: pathlib.Path):
    engine = ImportEngine(workdir=str(workdir))
    category = engine.ledger.add_category("Lebensmittel", "Einkauf")
    engine.run_import(workdir / "migros.csv")
    migros = engine.ledger.account_transactions(
        engine.ledger.find_account_by_name("Migros").id
    )[0]
    engine.ledger.update_transaction(migros.id, category=category.id)

    assert engine.learn_categories() == {"Migros Zürich": "Lebensmittel:Einkauf"}
    # known payees are not learned twice
    assert engine.learn_categories() == {}


def test_engine_remembers_rule_categories(
    workdir: pathlib.Path, construct_files: typing.Callable
):
    construct_files(
        workdir,
        {
            ".ledger_import": {
                "rules.yaml": """
rules:
- match:
    payee_name:
      prefix: Migros
  actions:
  - type: set
    category: "Lebensmittel:Einkauf"
"""
            }
        },
    )
    engine = ImportEngine(workdir=str(workdir))
    engine.ledger.add_category("Lebensmittel", "Einkauf")
    engine.ledger.add_category("Einkommen", "Lohn", is_income=True)
    engine.run_import(workdir / "migros.csv", preview=True)
    assert "Migros Zürich" not in json.loads(
        (workdir / "payee_category_mapping.json").read_text("utf-8")
    )

    engine.run_import(workdir / "migros.csv")
    assert json.loads((workdir / "payee_category_mapping.json").read_text("utf-8")) == {
        "Lohn Mai": "Einkommen:Lohn",
        "Migros Zürich": "Lebensmittel:Einkauf",
    }
    assert engine.context.payee_mapping["Migros Zürich"] == "Lebensmittel:Einkauf"
