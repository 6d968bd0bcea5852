import logging
import pathlib
import typing

import rich
from jinja2.sandbox import SandboxedEnvironment
from rich import box
from rich.markup import escape
from rich.padding import Padding
from rich.table import Table

from . import constants
from .api import ImportOptions
from .api import balance_check
from .api import import_configured_account
from .api import import_multi_currency
from .api import import_transactions
from .balance import check_and_correct
from .categories import category_selections
from .categories import collect_mappings_to_save
from .categories import learn_categories_from_ledger
from .data_types import BalanceCheckResult
from .data_types import ImportResult
from .data_types import MatchOutcome
from .data_types import ParseError
from .data_types import ParseOptions
from .data_types import RouteResult
from .data_types import SwissBankFormat
from .data_types import Verdict
from .data_types import make_candidates
from .environment import LogLevel
from .environment import setup_logging
from .includes import load_rules
from .ledger import MemoryLedger
from .parse_file import parse_file
from .router import RouteOptions
from .rules import apply_rules
from .settings import ImportContext
from .templates import as_money
from .templates import make_environment
from .utils import strip_base_path

TABLE_HEADER_STYLE = "yellow"
TABLE_COLUMN_STYLE = "cyan"


class ImportEngine:
    log_level: LogLevel = LogLevel.INFO
    logger: logging.Logger = logging.getLogger("ledger_import")
    workdir_path: pathlib.Path
    ledger_path: pathlib.Path
    rules_path: pathlib.Path
    template_env: SandboxedEnvironment
    context: ImportContext
    ledger: MemoryLedger

    def __init__(
        self,
        workdir: str,
        ledger_path: str = constants.LEDGER_FILE,
        rules_path: str = constants.RULES_FILE,
        log_level: str = LogLevel.INFO.value,
    ):
        self.workdir_path = pathlib.Path(workdir).resolve()
        self.ledger_path = (self.workdir_path / ledger_path).resolve()
        self.rules_path = (self.workdir_path / rules_path).resolve()
        self.log_level = LogLevel(log_level.lower())

        setup_logging(self.log_level)
        self.template_env = make_environment()
        self.context = ImportContext.from_workdir(self.workdir_path)
        self.ledger = MemoryLedger.load(self.ledger_path)
        self.logger.info(
            "Loaded ledger [green]%s[/]",
            strip_base_path(self.workdir_path, self.ledger_path),
            extra={"markup": True, "highlighter": None},
        )

    def save_ledger(self):
        self.ledger.dump(self.ledger_path)
        self.logger.info("Saved ledger to %s", self.ledger_path)

    def parse_options(self, **overrides) -> ParseOptions:
        return ParseOptions(home_currency=self.context.settings.home_currency, **overrides)

    def run_import(
        self,
        filepath: pathlib.Path,
        account_name: str | None = None,
        preview: bool = False,
        create_transfers: bool = True,
        expected_balance: int | None = None,
        parse_options: ParseOptions | None = None,
    ) -> ImportResult | RouteResult | None:
        if parse_options is None:
            parse_options = self.parse_options()
        parsed = parse_file(filepath, parse_options)
        self.print_errors(parsed.errors)
        if not parsed.transactions:
            self.logger.warning("No transactions found in %s", filepath)
            return None

        candidates = make_candidates(parsed.transactions)
        rules = load_rules(self.workdir_path, self.rules_path)
        matched = apply_rules(self.template_env, rules, candidates, self.ledger)
        self.logger.info("%s transactions matched import rules", matched)

        bank_format = parsed.metadata.bank_format if parsed.metadata else None
        result: ImportResult | RouteResult
        if account_name is not None:
            account = self.ledger.find_account_by_name(account_name)
            if account is None and not preview:
                account = self.ledger.find_or_create_account(account_name)
            if account is None:
                self.logger.info("Account %s does not exist yet, nothing to preview", account_name)
                return None
            result = import_transactions(
                self.ledger,
                account.id,
                candidates,
                preview,
                ImportOptions(duplicate_rule=self.context.settings.duplicate_rule),
            )
        elif bank_format == SwissBankFormat.REVOLUT:
            result = import_multi_currency(
                self.ledger,
                candidates,
                preview,
                self.context,
                RouteOptions(create_transfers=create_transfers),
            )
        elif bank_format == SwissBankFormat.MIGROS:
            result = import_configured_account(
                self.ledger, candidates, preview, self.context
            )
        else:
            raise ValueError(
                f"Cannot tell which account {filepath} belongs to, please pass an account name"
            )

        self.print_outcomes(result.outcomes, preview)
        self.print_errors(result.errors)
        if not preview:
            self.remember_categories(result.outcomes)
            self.save_ledger()

        if bank_format == SwissBankFormat.MIGROS and parsed.metadata.bank_saldo is not None:
            self.report_saldo(parsed.metadata.bank_saldo)
        if expected_balance is not None and not preview:
            self.print_balance(self.balance_check(expected_balance))
        return result

    def remember_categories(self, outcomes: typing.Sequence[MatchOutcome]):
        """Extend the payee mapping with categories chosen during a commit"""
        transactions = [
            outcome.candidate.txn
            for outcome in outcomes
            if outcome.candidate.selected
            and not outcome.tombstone
            and outcome.verdict != Verdict.IGNORED
        ]
        mapping = self.context.payee_mapping
        selections = category_selections(self.ledger, transactions, mapping)
        self.context.remember_categories(collect_mappings_to_save(selections, mapping))

    def report_saldo(self, bank_saldo: int):
        account = self.ledger.find_account_by_name(self.context.settings.migros_account)
        if account is None:
            return
        check_and_correct(
            self.ledger,
            account.id,
            bank_saldo,
            dry_run=True,
            currency=self.context.settings.home_currency,
        )

    def balance_check(self, expected_total: int) -> BalanceCheckResult:
        result = balance_check(self.ledger, expected_total, self.context)
        if result.correction_booked:
            self.save_ledger()
        return result

    def learn_categories(self) -> dict[str, str]:
        account_ids = [
            account.id for account in self.ledger.doc.accounts if not account.tombstone
        ]
        learned = learn_categories_from_ledger(self.ledger, account_ids)
        new_entries = {
            payee: category_key
            for payee, category_key in learned.items()
            if payee not in self.context.payee_mapping
        }
        self.context.remember_categories(new_entries)
        return new_entries

    def print_outcomes(self, outcomes: typing.Sequence[MatchOutcome], preview: bool):
        table = Table(
            title="Preview" if preview else "Imported transactions",
            box=box.SIMPLE,
            header_style=TABLE_HEADER_STYLE,
            expand=True,
        )
        table.add_column("Line", style=TABLE_COLUMN_STYLE)
        table.add_column("Date", style=TABLE_COLUMN_STYLE)
        table.add_column("Payee", style=TABLE_COLUMN_STYLE)
        table.add_column("Amount", style=TABLE_COLUMN_STYLE, justify="right")
        table.add_column("Verdict", style=TABLE_COLUMN_STYLE)
        for outcome in outcomes:
            txn = outcome.candidate.txn
            verdict = "deleted" if outcome.tombstone else outcome.verdict.value
            table.add_row(
                str(txn.lineno) if txn.lineno is not None else "",
                escape(str(txn.date)),
                escape(txn.display_payee),
                as_money(txn.amount),
                verdict,
            )
        rich.print(Padding(table, (1, 0, 0, 4)))

    def print_errors(self, errors: typing.Sequence[ParseError | dict[str, str]]):
        if not errors:
            return
        table = Table(
            title="Errors",
            box=box.SIMPLE,
            header_style=TABLE_HEADER_STYLE,
            expand=True,
        )
        table.add_column("Line", style=TABLE_COLUMN_STYLE)
        table.add_column("Message", style=TABLE_COLUMN_STYLE)
        for error in errors:
            if isinstance(error, ParseError):
                lineno = str(error.lineno) if error.lineno is not None else ""
                message = error.message
            else:
                lineno = ""
                message = error["message"]
            table.add_row(lineno, escape(message))
        rich.print(Padding(table, (1, 0, 0, 4)))

    def print_balance(self, result: BalanceCheckResult):
        if not result.success:
            self.logger.error("Balance check failed: %s", result.error)
            return
        currency = self.context.settings.home_currency
        self.logger.info(
            "Balance %s %s, expected %s %s, difference %s %s, correction booked: %s",
            as_money(result.account_balance),
            currency,
            as_money(result.expected_balance),
            currency,
            as_money(result.difference),
            currency,
            result.correction_booked,
        )
