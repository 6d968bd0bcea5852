"""
Text heuristics for Swiss bank exports.

All functions here are pure. Payee extraction is driven by ``PAYEE_RULES``,
checked in order; the first rule whose prefix and pattern match wins.
"""
import dataclasses
import re
import typing

from .amounts import to_minor_units
from .data_types import TransactionKind

TWINT_ID_RE = re.compile(r"(\d{16})")
EXCHANGE_TARGET_RE = re.compile(
    r"(?:\bto\b|\bnach\b|->|→)\s*(?:[\d',.]+\s*)?([A-Z]{3})\b", re.IGNORECASE
)
EXCHANGE_AMOUNT_RE = re.compile(r"(?:->|→|>)\s*([\d',.]+)\s*([A-Z]{3})\b")
PAYEE_FALLBACK_LENGTH = 50


def _strip_trailing_comma(name: str) -> str:
    return name.rstrip(",").strip()


def _strip_store_code(name: str) -> str:
    # "Coop-1167 Zürich" -> "Coop Zürich"
    return re.sub(r"^(Coop)-?\d+\s*", r"\1 ", name).strip()


@dataclasses.dataclass(frozen=True)
class PayeeRule:
    prefix: str
    pattern: re.Pattern
    cleanup: typing.Callable[[str], str] | None = None

    def apply(self, text: str) -> str | None:
        if not text.startswith(self.prefix):
            return None
        match = self.pattern.search(text)
        if match is None:
            return None
        name = match.group(1).strip()
        if self.cleanup is not None:
            name = self.cleanup(name)
        return name or None


PAYEE_RULES: tuple[PayeeRule, ...] = (
    # "TWINT Gutschrift Muster, Hans, +41791234567 ..."
    PayeeRule(
        prefix="TWINT Gutschrift",
        pattern=re.compile(r"TWINT Gutschrift\s+(.+?),\s*\+\d+"),
    ),
    PayeeRule(
        prefix="TWINT Gutschrift",
        pattern=re.compile(r"TWINT Gutschrift\s+(.+?)\s+\d{10,}"),
        cleanup=_strip_trailing_comma,
    ),
    # "TWINT Belastung 1234 - Migros Zürich 1234567890123456"
    PayeeRule(
        prefix="TWINT Belastung",
        pattern=re.compile(r"TWINT Belastung\s+\d+\s*-\s*(.+?)\s+\d{10,}"),
    ),
    PayeeRule(
        prefix="TWINT Belastung",
        pattern=re.compile(r"TWINT Belastung\s+(.+?)\s+\d{10,}"),
        cleanup=_strip_store_code,
    ),
)


def extract_payee(
    booking_text: str, rules: typing.Sequence[PayeeRule] = PAYEE_RULES
) -> str:
    text = booking_text.strip()
    for rule in rules:
        name = rule.apply(text)
        if name is not None:
            return name
    # company or person followed by an address
    if "," in text:
        return text.split(",")[0].strip()
    return text[:PAYEE_FALLBACK_LENGTH].strip()


def extract_twint_id(booking_text: str) -> str | None:
    match = TWINT_ID_RE.search(booking_text)
    if match is None:
        return None
    return match.group(1)


def parse_exchange_target_currency(description: str) -> str | None:
    match = EXCHANGE_TARGET_RE.search(description)
    if match is None:
        return None
    return match.group(1).upper()


def parse_exchange_amount(description: str, original_amount: int) -> int:
    """Counter amount of a currency exchange in minor units of the target currency.

    Looks for ``-> 540.22 EUR`` in the description; when there is nothing to
    parse the plain inverse of the original amount is used.
    """
    match = EXCHANGE_AMOUNT_RE.search(description)
    if match is not None:
        minor = to_minor_units(match.group(1).replace("'", "").replace(",", "."))
        if minor is not None:
            return minor if original_amount < 0 else -minor
    return -original_amount


def classify_revolut_transaction(
    type_text: str, description: str, currency: str
) -> tuple[TransactionKind, str | None]:
    """Classify a Revolut row, returns the kind and the counter currency
    for exchanges into a different currency."""
    type_lower = type_text.lower()
    desc_lower = description.lower()
    if type_lower in ("topup", "top-up"):
        return TransactionKind.TOPUP, None
    if type_lower == "transfer" and ("swift" in desc_lower or "sepa" in desc_lower):
        return TransactionKind.SWIFT_TRANSFER, None
    if type_lower == "atm" or "cash withdrawal" in desc_lower:
        return TransactionKind.ATM, None
    if type_lower == "exchange" or "exchanged" in desc_lower:
        target = parse_exchange_target_currency(description)
        if target is not None and target != currency.upper():
            return TransactionKind.EXCHANGE, target
        return TransactionKind.EXCHANGE, None
    if type_lower in ("card payment", "kartenzahlung"):
        return TransactionKind.CARD_PAYMENT, None
    return TransactionKind.EXPENSE, None
