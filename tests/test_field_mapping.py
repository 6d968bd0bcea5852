import datetime

import pytest

from ledger_import.data_types import FieldMapping
from ledger_import.field_mapping import apply_multiplier
from ledger_import.field_mapping import convert_rows
from ledger_import.field_mapping import get_column
from ledger_import.field_mapping import parse_mapped_amount


@pytest.mark.parametrize(
    "row, column, expected",
    [
        ({"date": "2024-01-01"}, "date", "2024-01-01"),
        ({"date": "2024-01-01"}, "payee", None),
        (["2024-01-01", "Shop"], 1, "Shop"),
        (["2024-01-01", "Shop"], "1", "Shop"),
        (["2024-01-01", "Shop"], 5, None),
        (["2024-01-01", "Shop"], "payee", None),
        (["2024-01-01"], None, None),
    ],
)
def test_get_column(row, column, expected):
    assert get_column(row, column) == expected


@pytest.mark.parametrize(
    "amount, mapping, expected",
    [
        (1250, FieldMapping(), 1250),
        (1250, FieldMapping(flip_amount=True), -1250),
        (1250, FieldMapping(multiplier=0.01), 13),
        (-1250, FieldMapping(flip_amount=True, multiplier=2), 2500),
    ],
)
def test_apply_multiplier(amount: int, mapping: FieldMapping, expected: int):
    assert apply_multiplier(amount, mapping) == expected


@pytest.mark.parametrize(
    "row, expected",
    [
        ({"in": "100.00", "out": ""}, 10000),
        ({"in": "", "out": "25.50"}, -2550),
        ({"in": "", "out": "-25.50"}, -2550),
        ({"in": "10.00", "out": "2.00"}, 800),
        ({"in": "", "out": ""}, None),
        ({"in": "abc", "out": ""}, None),
    ],
)
def test_parse_mapped_amount_inflow_outflow(row: dict, expected: int | None):
    mapping = FieldMapping(amount=None, inflow="in", outflow="out")
    assert parse_mapped_amount(row, mapping) == expected


def test_convert_rows_by_index():
    mapping = FieldMapping(date=0, payee=1, amount=2, date_format="%d.%m.%Y")
    transactions, errors = convert_rows(
        [["15.01.2024", "Shop", "-12.50"], ["16.01.2024", "", "3.00"]], mapping
    )
    assert errors == []
    assert [(txn.date, txn.payee_name, txn.amount, txn.lineno) for txn in transactions] == [
        (datetime.date(2024, 1, 15), "Shop", -1250, 1),
        (datetime.date(2024, 1, 16), None, 300, 2),
    ]


def test_convert_rows_stops_at_first_bad_row():
    rows = [
        {"date": "2024-01-15", "payee": "Shop", "amount": "-12.50"},
        {"date": "2024-01-16", "payee": "Shop", "amount": "n/a"},
        {"date": "2024-01-17", "payee": "Shop", "amount": "1.00"},
    ]
    transactions, errors = convert_rows(rows, FieldMapping())
    assert [txn.amount for txn in transactions] == [-1250]
    assert [(error.message, error.lineno) for error in errors] == [
        ("Invalid amount format", 2)
    ]


def test_convert_rows_invalid_date():
    transactions, errors = convert_rows(
        [{"date": "yesterday", "payee": "Shop", "amount": "1.00"}], FieldMapping()
    )
    assert transactions == []
    assert [(error.message, error.lineno) for error in errors] == [
        ("Invalid date format: yesterday", 1)
    ]


def test_convert_rows_skip_notes():
    transactions, _ = convert_rows(
        [{"date": "2024-01-15", "amount": "1.00", "memo": "hello"}],
        FieldMapping(notes="memo"),
        import_notes=False,
    )
    assert transactions[0].notes is None
