import decimal

from jinja2.sandbox import SandboxedEnvironment

from . import constants


def as_money(minor_units: int) -> str:
    value = decimal.Decimal(minor_units) / constants.MINOR_UNITS
    return f"{value:.2f}"


def make_environment():
    env = SandboxedEnvironment()
    env.filters["as_money"] = as_money
    return env
