import dataclasses
import datetime
import enum
import typing

import pydantic
from pydantic import BaseModel

from . import constants


class ImportBaseModel(BaseModel):
    pass


@enum.unique
class FileFormat(str, enum.Enum):
    QIF = "qif"
    OFX = "ofx"
    CAMT = "camt"
    CSV = "csv"


@enum.unique
class SwissBankFormat(str, enum.Enum):
    AUTO = "auto"
    MIGROS = "migros"
    REVOLUT = "revolut"

    @classmethod
    def _missing_(cls, value):
        # short aliases used by older settings and the command line
        if isinstance(value, str):
            return {"a": cls.MIGROS, "b": cls.REVOLUT}.get(value.lower())
        return None


@enum.unique
class TransactionKind(str, enum.Enum):
    TOPUP = "topup"
    SWIFT_TRANSFER = "swift_transfer"
    ATM = "atm"
    EXCHANGE = "exchange"
    CARD_PAYMENT = "card_payment"
    EXPENSE = "expense"

    @property
    def is_transfer(self) -> bool:
        return self in TRANSFER_KINDS


TRANSFER_KINDS = frozenset(
    [
        TransactionKind.TOPUP,
        TransactionKind.SWIFT_TRANSFER,
        TransactionKind.ATM,
        TransactionKind.EXCHANGE,
    ]
)


@dataclasses.dataclass(frozen=True)
class MultiCurrencyExtension:
    # classification of the record, drives transfer linking
    kind: TransactionKind
    # name of the counter account, only known up front for exchanges
    transfer_account: str | None = None


@dataclasses.dataclass(frozen=True)
class NormalizedTransaction:
    # signed amount in minor currency units
    amount: int
    date: datetime.date
    # payee as shown in the ledger, may be rewritten by rules
    payee_name: str | None = None
    # raw payee text from the source file
    imported_payee: str | None = None
    notes: str | None = None
    # stable id supplied by (or derived from) the source file
    imported_id: str | None = None
    # ISO 4217 code, None means home currency
    currency: str | None = None
    # category id in the ledger
    category: str | None = None
    # entry line number of the source file
    lineno: int | None = None
    extension: MultiCurrencyExtension | None = None

    @property
    def display_payee(self) -> str:
        return self.payee_name or self.imported_payee or ""


@dataclasses.dataclass
class ImportCandidate:
    # correlation id, unique within one import batch
    trx_id: str
    txn: NormalizedTransaction
    selected: bool = True
    existing: bool = False
    ignored: bool = False
    tombstone: bool = False
    force_add: bool = False


def make_candidates(
    transactions: typing.Iterable[NormalizedTransaction],
) -> list[ImportCandidate]:
    return [
        ImportCandidate(trx_id=str(index), txn=txn)
        for index, txn in enumerate(transactions)
    ]


@dataclasses.dataclass(frozen=True)
class ParseError:
    message: str
    internal: str = ""
    lineno: int | None = None


@dataclasses.dataclass
class ParseMetadata:
    bank_saldo: int | None = None
    bank_format: SwissBankFormat | None = None
    currencies: list[str] | None = None


@dataclasses.dataclass
class ParseResult:
    errors: list[ParseError] = dataclasses.field(default_factory=list)
    transactions: list[NormalizedTransaction] = dataclasses.field(
        default_factory=list
    )
    metadata: ParseMetadata | None = None
    # raw rows of a generic CSV file before field mapping
    rows: list[dict[str, str] | list[str]] | None = None


class FieldMapping(ImportBaseModel):
    """Column mapping for generic CSV files.

    Columns are header names when the file has a header row, otherwise zero
    based column indexes.
    """

    date: str | int = "date"
    payee: str | int | None = "payee"
    amount: str | int | None = "amount"
    notes: str | int | None = None
    inflow: str | int | None = None
    outflow: str | int | None = None
    date_format: str | None = None
    flip_amount: bool = False
    multiplier: float = 1.0


class ParseOptions(ImportBaseModel):
    delimiter: str | None = None
    has_header_row: bool = True
    skip_start_lines: int = 0
    skip_end_lines: int = 0
    fallback_missing_payee_to_memo: bool = False
    import_notes: bool = True
    swiss_bank_format: SwissBankFormat | None = SwissBankFormat.AUTO
    field_mapping: FieldMapping | None = None
    home_currency: str = constants.HOME_CURRENCY


class Account(ImportBaseModel):
    id: str
    name: str
    offbudget: bool = False
    closed: bool = False
    tombstone: bool = False


class Payee(ImportBaseModel):
    id: str
    name: str
    # set for the payee representing transfers into an account
    transfer_acct: str | None = None
    tombstone: bool = False


class CategoryGroup(ImportBaseModel):
    id: str
    name: str
    is_income: bool = False
    tombstone: bool = False


class Category(ImportBaseModel):
    id: str
    name: str
    cat_group: str
    tombstone: bool = False


class LedgerTransaction(ImportBaseModel):
    id: str
    account: str
    date: datetime.date
    amount: int
    payee: str | None = None
    imported_payee: str | None = None
    imported_id: str | None = None
    notes: str | None = None
    category: str | None = None
    cleared: bool = False
    reconciled: bool = False
    tombstone: bool = False
    transferred_id: str | None = None


class LedgerDoc(ImportBaseModel):
    accounts: list[Account] = pydantic.Field(default_factory=list)
    payees: list[Payee] = pydantic.Field(default_factory=list)
    category_groups: list[CategoryGroup] = pydantic.Field(default_factory=list)
    categories: list[Category] = pydantic.Field(default_factory=list)
    transactions: list[LedgerTransaction] = pydantic.Field(default_factory=list)


@enum.unique
class Verdict(str, enum.Enum):
    ADDED = "added"
    MATCHED = "matched"
    IGNORED = "ignored"


@dataclasses.dataclass
class MatchOutcome:
    candidate: ImportCandidate
    verdict: Verdict
    existing: LedgerTransaction | None = None
    tombstone: bool = False
    # ledger id written for this candidate at commit time
    ledger_id: str | None = None


@dataclasses.dataclass(frozen=True)
class PreviewEntry:
    transaction: ImportCandidate
    existing: LedgerTransaction | None
    ignored: bool = False
    tombstone: bool = False


@dataclasses.dataclass
class ReconcileResult:
    added: list[str] = dataclasses.field(default_factory=list)
    updated: list[str] = dataclasses.field(default_factory=list)
    updated_preview: list[PreviewEntry] = dataclasses.field(default_factory=list)
    outcomes: list[MatchOutcome] = dataclasses.field(default_factory=list)


@dataclasses.dataclass
class ImportResult:
    errors: list[dict[str, str]] = dataclasses.field(default_factory=list)
    added: list[str] = dataclasses.field(default_factory=list)
    updated: list[str] = dataclasses.field(default_factory=list)
    updated_preview: list[PreviewEntry] = dataclasses.field(default_factory=list)
    outcomes: list[MatchOutcome] = dataclasses.field(default_factory=list)
    account_used: str | None = None
    categories_applied: int = 0


@dataclasses.dataclass
class CurrencyImport:
    added: list[str] = dataclasses.field(default_factory=list)
    updated: list[str] = dataclasses.field(default_factory=list)


@dataclasses.dataclass
class RouteResult:
    errors: list[dict[str, str]] = dataclasses.field(default_factory=list)
    accounts_created: list[str] = dataclasses.field(default_factory=list)
    imported: dict[str, CurrencyImport] = dataclasses.field(default_factory=dict)
    transfers_linked: int = 0
    categories_applied: int = 0
    outcomes: list[MatchOutcome] = dataclasses.field(default_factory=list)


@dataclasses.dataclass(frozen=True)
class BalanceCorrection:
    actual_balance: int
    expected_balance: int
    difference: int
    correction_created: bool
    correction_id: str | None = None


@dataclasses.dataclass(frozen=True)
class BalanceCheckResult:
    difference: int = 0
    account_balance: int = 0
    expected_balance: int = 0
    correction_booked: bool = False
    success: bool = True
    error: str | None = None


@dataclasses.dataclass(frozen=True)
class PayeeMatch:
    payee: str
    # "Group:Category" key from the mapping
    proposed_category: str | None
    has_match: bool
    is_expense: bool


@dataclasses.dataclass(frozen=True)
class CategorySelection:
    payee: str
    proposed_category: str | None
    selected_category: str | None
    has_match: bool
    is_expense: bool = True


class DuplicateRule(ImportBaseModel):
    # how many days apart two postings may be and still count as duplicates
    date_tolerance_days: int = pydantic.Field(0, ge=0)
    match_payee: bool = True


class ImportSettings(ImportBaseModel):
    migros_account: str = ""
    revolut_bank_account: str = ""
    cash_account: str = ""
    # "Group:Category" used for automatic balance corrections
    revolut_differenz_category: str = ""
    home_currency: str = constants.HOME_CURRENCY
    provider_name: str = constants.PROVIDER_NAME
    duplicate_rule: DuplicateRule = pydantic.Field(default_factory=DuplicateRule)


class StrRegexMatch(ImportBaseModel):
    regex: str


class StrExactMatch(ImportBaseModel):
    equals: str


class StrOneOfMatch(ImportBaseModel):
    one_of: list[str]
    ignore_case: bool = False


class StrPrefixMatch(ImportBaseModel):
    prefix: str


class StrSuffixMatch(ImportBaseModel):
    suffix: str


class StrContainsMatch(ImportBaseModel):
    contains: str


StrMatch = (
    str
    | StrPrefixMatch
    | StrSuffixMatch
    | StrExactMatch
    | StrContainsMatch
    | StrOneOfMatch
)


class TxnMatchRule(ImportBaseModel):
    """
    Every listed field has to match for the rule to apply, e.g.

    ```YAML
    - match:
        payee_name:
          prefix: "TWINT"
        currency: CHF
    ```
    """

    payee_name: StrMatch | None = None
    imported_payee: StrMatch | None = None
    notes: StrMatch | None = None
    imported_id: StrMatch | None = None
    currency: StrMatch | None = None
    kind: StrMatch | None = None


@enum.unique
class ActionType(str, enum.Enum):
    set = "set"
    ignore = "ignore"
    delete = "delete"


class ActionSet(ImportBaseModel):
    type: typing.Literal[ActionType.set] = pydantic.Field(ActionType.set)
    # jinja2 templates rendered with the transaction fields
    payee_name: str | None = None
    notes: str | None = None
    # "Group:Category"
    category: str | None = None


class ActionIgnore(ImportBaseModel):
    type: typing.Literal[ActionType.ignore] = pydantic.Field(ActionType.ignore)


class ActionDelete(ImportBaseModel):
    type: typing.Literal[ActionType.delete] = pydantic.Field(ActionType.delete)


Action = ActionSet | ActionIgnore | ActionDelete


class ImportRule(ImportBaseModel):
    # name of the rule, for users to read only
    name: str | None = None
    match: TxnMatchRule
    actions: list[Action]


class IncludeRule(ImportBaseModel):
    include: str | list[str]


class RulesDoc(ImportBaseModel):
    rules: list[ImportRule | IncludeRule] = pydantic.Field(default_factory=list)
