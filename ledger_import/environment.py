import dataclasses
import enum
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

# per candidate matching details, below debug
VERBOSE_LOG_LEVEL = 5
logging.addLevelName(VERBOSE_LOG_LEVEL, "VERBOSE")


@enum.unique
class LogLevel(enum.Enum):
    VERBOSE = "verbose"
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


LOG_LEVEL_MAP = {
    LogLevel.VERBOSE: VERBOSE_LOG_LEVEL,
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


def setup_logging(log_level: LogLevel, console: Console | None = None):
    """Route every ledger_import logger through one rich handler"""
    logging.basicConfig(
        level=LOG_LEVEL_MAP[log_level],
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console)],
        force=True,
    )


@dataclasses.dataclass
class Environment:
    log_level: LogLevel = LogLevel.INFO
    console: Console = dataclasses.field(default_factory=Console)


pass_env = click.make_pass_decorator(Environment, ensure=True)
