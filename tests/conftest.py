import pathlib
import typing

import pytest
from jinja2.sandbox import SandboxedEnvironment

from ledger_import.ledger import MemoryLedger
from ledger_import.templates import make_environment

TEST_PACKAGE_FOLDER = pathlib.Path(__file__).parent
FIXTURE_FOLDER = TEST_PACKAGE_FOLDER / "fixtures"


@pytest.fixture
def fixtures_folder() -> pathlib.Path:
    return FIXTURE_FOLDER


@pytest.fixture
def construct_files() -> (
    typing.Callable[[pathlib.Path, typing.Dict[str, typing.Any]], None]
):
    def _construct_files(workdir: pathlib.Path, files: typing.Dict[str, typing.Any]):
        for name, value in files.items():
            if isinstance(value, str):
                with open(workdir / name, "wt", encoding="utf-8") as fo:
                    fo.write(value)
            elif isinstance(value, dict):
                sub_dir = workdir / name
                sub_dir.mkdir()
                _construct_files(sub_dir, value)
            else:
                raise ValueError()

    return _construct_files


@pytest.fixture
def template_env() -> SandboxedEnvironment:
    return make_environment()


@pytest.fixture
def ledger() -> MemoryLedger:
    ledger = MemoryLedger()
    ledger.add_category("Lebensmittel", "Einkauf")
    ledger.add_category("Freizeit", "Restaurant")
    ledger.add_category("Diverses", "Differenz")
    ledger.add_category("Einkommen", "Lohn", is_income=True)
    return ledger
