import json
import os
import pathlib

import click
import pydantic
import yaml

from . import constants
from .amounts import parse_swiss_amount
from .data_types import FieldMapping
from .data_types import ImportSettings
from .data_types import RulesDoc
from .engine import ImportEngine
from .environment import LOG_LEVEL_MAP
from .environment import Environment
from .environment import LogLevel
from .environment import pass_env
from .settings import load_settings
from .settings import save_settings


def parse_money(ctx: click.Context, param: click.Parameter, value: str | None) -> int | None:
    if value is None:
        return None
    amount = parse_swiss_amount(value)
    if amount is None:
        raise click.BadParameter(f"{value!r} is not an amount")
    return amount


workdir_option = click.option(
    "-w",
    "--workdir",
    type=click.Path(exists=True, dir_okay=True, file_okay=False),
    default=lambda: str(pathlib.Path.cwd()),
    help="The directory holding the ledger, settings and import rules",
)
ledger_option = click.option(
    "-b",
    "--ledger",
    type=click.Path(),
    default=constants.LEDGER_FILE,
    help="The path to the ledger document, relative to the workdir",
)


@click.group()
@click.option(
    "-l",
    "--log-level",
    type=click.Choice(
        list(map(lambda key: key.value, LOG_LEVEL_MAP.keys())), case_sensitive=False
    ),
    default=lambda: os.environ.get("LOG_LEVEL", "INFO"),
)
@pass_env
def cli(env: Environment, log_level: str):
    env.log_level = LogLevel(log_level.lower())


@cli.command(name="import")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@workdir_option
@ledger_option
@click.option(
    "-r",
    "--rules",
    type=click.Path(),
    default=constants.RULES_FILE,
    help="The path to the import rules document, relative to the workdir",
)
@click.option(
    "-a",
    "--account",
    help="Import into this account instead of the one derived from the file",
)
@click.option("--preview", is_flag=True, help="Show what would be imported, write nothing")
@click.option(
    "--no-transfers",
    is_flag=True,
    help="Do not create linked counter postings for transfers",
)
@click.option(
    "--expected-balance",
    callback=parse_money,
    help="Bank reported total to check the account balance against after import",
)
@click.option(
    "-m",
    "--mapping",
    type=click.Path(exists=True, dir_okay=False),
    help="YAML column mapping for generic CSV files",
)
@click.option("--delimiter", help="Delimiter of generic CSV files")
@click.option("--no-header", is_flag=True, help="Generic CSV file has no header row")
@click.option("--skip-start", type=int, default=0, help="Lines to skip at the start")
@click.option("--skip-end", type=int, default=0, help="Lines to skip at the end")
@pass_env
def import_cmd(
    env: Environment,
    file: str,
    workdir: str,
    ledger: str,
    rules: str,
    account: str | None,
    preview: bool,
    no_transfers: bool,
    expected_balance: int | None,
    mapping: str | None,
    delimiter: str | None,
    no_header: bool,
    skip_start: int,
    skip_end: int,
):
    """
    Import a bank export into the ledger:

        > ledger-import import -w books/ exports/revolut-2024-05.csv

    Revolut exports go into one account per currency, Migros Bank exports into
    the account configured in import_settings.json. Everything else needs an
    --account.
    """
    engine = ImportEngine(
        workdir=workdir,
        ledger_path=ledger,
        rules_path=rules,
        log_level=env.log_level.value,
    )
    field_mapping = None
    if mapping is not None:
        with open(mapping, "rt", encoding="utf-8") as fo:
            field_mapping = FieldMapping.model_validate(yaml.safe_load(fo) or {})
    parse_options = engine.parse_options(
        delimiter=delimiter,
        has_header_row=not no_header,
        skip_start_lines=skip_start,
        skip_end_lines=skip_end,
        field_mapping=field_mapping,
    )
    try:
        engine.run_import(
            pathlib.Path(file),
            account_name=account,
            preview=preview,
            create_transfers=not no_transfers,
            expected_balance=expected_balance,
            parse_options=parse_options,
        )
    except ValueError as exc:
        raise click.UsageError(str(exc))


@cli.command(name="balance-check")
@click.argument("total", callback=parse_money)
@workdir_option
@ledger_option
@pass_env
def balance_check_cmd(env: Environment, total: int, workdir: str, ledger: str):
    """Compare the home currency provider account with the bank reported TOTAL"""
    engine = ImportEngine(
        workdir=workdir, ledger_path=ledger, log_level=env.log_level.value
    )
    result = engine.balance_check(total)
    engine.print_balance(result)
    if not result.success:
        raise SystemExit(1)


@cli.command(name="learn-categories")
@workdir_option
@ledger_option
@pass_env
def learn_categories_cmd(env: Environment, workdir: str, ledger: str):
    """Learn payee categories from already categorized postings"""
    engine = ImportEngine(
        workdir=workdir, ledger_path=ledger, log_level=env.log_level.value
    )
    learned = engine.learn_categories()
    for payee, category_key in learned.items():
        env.console.print(f"{payee} -> {category_key}", highlight=False)


@cli.command(name="settings")
@workdir_option
@click.option(
    "-s",
    "--set",
    "assignments",
    multiple=True,
    metavar="KEY=VALUE",
    help="Change a setting, e.g. --set cash_account=Kasse",
)
def settings_cmd(workdir: str, assignments: tuple[str, ...]):
    """Show or change the import settings"""
    settings_path = pathlib.Path(workdir) / constants.SETTINGS_FILE
    settings = load_settings(settings_path)
    if assignments:
        payload = settings.model_dump()
        for assignment in assignments:
            key, sep, value = assignment.partition("=")
            if not sep or key not in ImportSettings.model_fields:
                raise click.BadParameter(f"Invalid setting {assignment!r}", param_hint="--set")
            payload[key] = value
        try:
            settings = ImportSettings.model_validate(payload)
        except pydantic.ValidationError as exc:
            raise click.BadParameter(str(exc), param_hint="--set")
        save_settings(settings_path, settings)
    click.echo(settings.model_dump_json(indent=2))


@cli.command(name="schema")
def schema_cmd():
    with open("schema-settings.json", "w") as f:
        f.write(json.dumps(ImportSettings.model_json_schema(), indent=2))

    with open("schema-rules.json", "w") as f:
        f.write(json.dumps(RulesDoc.model_json_schema(), indent=2))


if __name__ == "__main__":
    cli()
