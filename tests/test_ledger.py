import datetime
import pathlib

import pytest

from ledger_import.ledger import MemoryLedger
from ledger_import.ledger import TransactionError


def test_find_or_create_account_idempotent(ledger: MemoryLedger):
    first = ledger.find_or_create_account("Revolut EUR")
    second = ledger.find_or_create_account("Revolut EUR")
    assert first == second
    assert [account.name for account in ledger.doc.accounts] == ["Revolut EUR"]
    assert ledger.transfer_payee(first.id) is not None
    assert ledger.payee_name(ledger.transfer_payee(first.id).id) == "Revolut EUR"


def test_find_account_is_case_sensitive(ledger: MemoryLedger):
    ledger.find_or_create_account("Revolut EUR")
    assert ledger.find_account_by_name("revolut eur") is None


def test_find_or_create_payee(ledger: MemoryLedger):
    ledger.find_or_create_account("Kasse")
    payee = ledger.find_or_create_payee("Migros")
    assert ledger.find_or_create_payee("MIGROS") == payee
    # transfer payees are never reused for plain names
    assert ledger.find_or_create_payee("").transfer_acct is None


def test_insert_transaction_unknown_account(ledger: MemoryLedger):
    with pytest.raises(TransactionError):
        ledger.insert_transaction(
            account="missing", date=datetime.date(2024, 1, 1), amount=100
        )
    with pytest.raises(TransactionError):
        ledger.update_transaction("missing", notes="x")


def test_account_balance_skips_tombstones(ledger: MemoryLedger):
    account = ledger.find_or_create_account("Revolut CHF")
    kept = ledger.insert_transaction(
        account=account.id, date=datetime.date(2024, 1, 1), amount=10000
    )
    deleted = ledger.insert_transaction(
        account=account.id, date=datetime.date(2024, 1, 2), amount=250
    )
    ledger.update_transaction(deleted.id, tombstone=True)
    assert ledger.account_balance(account.id) == 10000
    assert ledger.account_transactions(account.id) == [kept]


def test_category_key(ledger: MemoryLedger):
    category = ledger.find_category("Freizeit", "Restaurant")
    assert ledger.category_key(category.id) == "Freizeit:Restaurant"
    assert ledger.category_key(None) is None
    assert ledger.find_category("Freizeit", "Kino") is None


def test_load_and_dump(ledger: MemoryLedger, tmp_path: pathlib.Path):
    account = ledger.find_or_create_account("Migros")
    ledger.insert_transaction(
        account=account.id,
        date=datetime.date(2024, 5, 31),
        amount=-4530,
        payee=ledger.find_or_create_payee("Café Zürich").id,
    )
    path = tmp_path / "ledger.yaml"
    ledger.dump(path)
    assert MemoryLedger.load(path).doc == ledger.doc


def test_load_missing(tmp_path: pathlib.Path):
    assert MemoryLedger.load(tmp_path / "ledger.yaml").doc.accounts == []
