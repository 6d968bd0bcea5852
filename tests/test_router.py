import datetime
import pathlib

import pytest

from ledger_import.api import import_multi_currency
from ledger_import.data_types import ImportSettings
from ledger_import.data_types import MultiCurrencyExtension
from ledger_import.data_types import NormalizedTransaction
from ledger_import.data_types import TransactionKind
from ledger_import.data_types import make_candidates
from ledger_import.ledger import MemoryLedger
from ledger_import.parse_file import parse_file
from ledger_import.router import RouteOptions
from ledger_import.router import counter_amount
from ledger_import.router import partition_by_currency
from ledger_import.router import route_and_import
from ledger_import.router import transfer_target
from ledger_import.settings import ImportContext


@pytest.fixture
def context() -> ImportContext:
    return ImportContext(
        settings=ImportSettings(revolut_bank_account="Migros", cash_account="Kasse")
    )


@pytest.fixture
def revolut_transactions(fixtures_folder: pathlib.Path) -> list[NormalizedTransaction]:
    return parse_file(fixtures_folder / "revolut.csv").transactions


def account_amounts(ledger: MemoryLedger, name: str) -> list[int]:
    account = ledger.find_account_by_name(name)
    return [txn.amount for txn in ledger.account_transactions(account.id)]


def test_route_and_import(
    ledger: MemoryLedger,
    context: ImportContext,
    revolut_transactions: list[NormalizedTransaction],
):
    result = route_and_import(
        ledger, make_candidates(revolut_transactions), False, context
    )
    assert result.errors == []
    assert result.accounts_created == ["Revolut CHF", "Revolut EUR", "Migros", "Kasse"]
    assert {currency: len(item.added) for currency, item in result.imported.items()} == {
        "CHF": 4,
        "EUR": 1,
    }
    assert result.transfers_linked == 3

    assert account_amounts(ledger, "Revolut CHF") == [20000, -4530, -10000, -5000]
    assert account_amounts(ledger, "Revolut EUR") == [10800, 10000]
    assert account_amounts(ledger, "Migros") == [-20000]
    assert account_amounts(ledger, "Kasse") == [5000]
    assert ledger.find_account_by_name("Kasse").offbudget
    assert not ledger.find_account_by_name("Migros").offbudget

    revolut_chf = ledger.find_account_by_name("Revolut CHF")
    atm = ledger.account_transactions(revolut_chf.id)[-1]
    counter = ledger.get_transaction(atm.transferred_id)
    assert counter.transferred_id == atm.id
    assert counter.date == datetime.date(2024, 5, 6)
    assert counter.notes == "[Transfer] Cash at Bahnhof"
    assert not counter.cleared
    assert ledger.payee_name(counter.payee) == "Kasse"


def test_route_and_import_twice(
    ledger: MemoryLedger,
    context: ImportContext,
    revolut_transactions: list[NormalizedTransaction],
):
    route_and_import(ledger, make_candidates(revolut_transactions), False, context)
    count = len(ledger.doc.transactions)

    result = route_and_import(
        ledger, make_candidates(revolut_transactions), False, context
    )
    assert result.errors == []
    assert result.accounts_created == []
    assert result.transfers_linked == 0


def test_preview_then_commit_same_candidates(
    ledger: MemoryLedger,
    context: ImportContext,
    revolut_transactions: list[NormalizedTransaction],
):
    ledger.find_or_create_account("Revolut CHF")
    ledger.find_or_create_account("Revolut EUR")
    candidates = make_candidates(revolut_transactions)
    currencies = [candidate.txn.currency for candidate in candidates]

    preview = import_multi_currency(ledger, candidates, True, context)
    assert preview.errors == []
    assert len(preview.outcomes) == 5
    assert [candidate.txn.currency for candidate in candidates] == currencies
    assert all(outcome.candidate in candidates for outcome in preview.outcomes)

    result = import_multi_currency(ledger, candidates, False, context)
    assert {currency: len(item.added) for currency, item in result.imported.items()} == {
        "CHF": 4,
        "EUR": 1,
    }
    assert result.transfers_linked == 3
    assert account_amounts(ledger, "Revolut EUR") == [10800, 10000]
    assert all(not item.added for item in result.imported.values())
    assert len(ledger.doc.transactions) == count


def test_route_and_import_preview(
    ledger: MemoryLedger,
    context: ImportContext,
    revolut_transactions: list[NormalizedTransaction],
):
    before = ledger.doc.model_copy(deep=True)
    result = route_and_import(
        ledger, make_candidates(revolut_transactions), True, context
    )
    assert ledger.doc == before
    assert result.accounts_created == ["Revolut CHF", "Revolut EUR"]
    assert all(
        not item.added and not item.updated for item in result.imported.values()
    )
    assert result.transfers_linked == 0


def test_route_and_import_without_transfers(
    ledger: MemoryLedger,
    context: ImportContext,
    revolut_transactions: list[NormalizedTransaction],
):
    result = route_and_import(
        ledger,
        make_candidates(revolut_transactions),
        False,
        context,
        RouteOptions(create_transfers=False),
    )
    assert result.transfers_linked == 0
    assert ledger.find_account_by_name("Kasse") is None
    assert all(
        txn.transferred_id is None for txn in ledger.doc.transactions
    )


def test_route_and_import_unconfigured_targets(
    ledger: MemoryLedger, revolut_transactions: list[NormalizedTransaction]
):
    result = route_and_import(
        ledger, make_candidates(revolut_transactions), False, ImportContext()
    )
    # only the exchange knows its counter account
    assert result.transfers_linked == 1
    assert result.accounts_created == ["Revolut CHF", "Revolut EUR"]


def test_route_and_import_proposes_categories(
    ledger: MemoryLedger,
    context: ImportContext,
    revolut_transactions: list[NormalizedTransaction],
):
    context.payee_mapping = {"migros": "Lebensmittel:Einkauf"}
    result = route_and_import(
        ledger, make_candidates(revolut_transactions), False, context
    )
    assert result.categories_applied == 1
    category = ledger.find_category("Lebensmittel", "Einkauf")
    assert [
        txn.imported_payee for txn in ledger.doc.transactions if txn.category == category.id
    ] == ["Migros"]


def test_import_multi_currency_ambiguous(
    ledger: MemoryLedger, context: ImportContext
):
    account = ledger.find_or_create_account("Revolut CHF")
    for _ in range(2):
        ledger.insert_transaction(
            account=account.id,
            date=datetime.date(2024, 5, 1),
            amount=100,
            imported_id="DUP",
        )
    result = import_multi_currency(
        ledger,
        [
            NormalizedTransaction(
                amount=100, date=datetime.date(2024, 5, 1), imported_id="DUP"
            ),
            NormalizedTransaction(
                amount=200, date=datetime.date(2024, 5, 1), currency="EUR"
            ),
        ],
        False,
        context,
    )
    assert [error["message"] for error in result.errors] == [
        "Ambiguous match, 2 postings carry imported id DUP"
    ]
    assert "CHF" not in result.imported
    assert len(result.imported["EUR"].added) == 1


def test_partition_by_currency():
    transactions = [
        NormalizedTransaction(amount=1, date=datetime.date(2024, 1, 1)),
        NormalizedTransaction(amount=2, date=datetime.date(2024, 1, 1), currency="eur"),
        NormalizedTransaction(amount=3, date=datetime.date(2024, 1, 1), currency="CHF"),
    ]
    partitions = partition_by_currency(make_candidates(transactions), "CHF")
    assert {
        currency: [candidate.txn.amount for candidate in candidates]
        for currency, candidates in partitions.items()
    } == {"CHF": [1, 3], "EUR": [2]}


@pytest.mark.parametrize(
    "kind, transfer_account, expected",
    [
        (TransactionKind.TOPUP, None, "Migros"),
        (TransactionKind.SWIFT_TRANSFER, None, "Migros"),
        (TransactionKind.ATM, None, "Kasse"),
        (TransactionKind.EXCHANGE, "Revolut EUR", "Revolut EUR"),
        (TransactionKind.EXCHANGE, None, None),
        (TransactionKind.CARD_PAYMENT, None, None),
    ],
)
def test_transfer_target(
    kind: TransactionKind, transfer_account: str | None, expected: str | None
):
    txn = NormalizedTransaction(
        amount=-100,
        date=datetime.date(2024, 1, 1),
        extension=MultiCurrencyExtension(kind=kind, transfer_account=transfer_account),
    )
    assert transfer_target(txn, "Migros", "Kasse") == expected


@pytest.mark.parametrize(
    "kind, description, amount, expected",
    [
        (TransactionKind.ATM, "Cash", -5000, 5000),
        (TransactionKind.TOPUP, "Top-Up", 20000, -20000),
        (TransactionKind.EXCHANGE, "500.00 CHF -> 540.22 EUR", -50000, 54022),
        (TransactionKind.EXCHANGE, "Exchanged to EUR", -10000, 10000),
    ],
)
def test_counter_amount(
    kind: TransactionKind, description: str, amount: int, expected: int
):
    txn = NormalizedTransaction(
        amount=amount,
        date=datetime.date(2024, 1, 1),
        imported_payee=description,
        extension=MultiCurrencyExtension(kind=kind),
    )
    assert counter_amount(txn) == expected
