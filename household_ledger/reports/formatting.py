"""Display formatting for amounts, months and dates."""

from datetime import date
from decimal import Decimal
from typing import Any, Optional

from household_ledger.config import AppSettings, get_settings
from household_ledger.models.ledger import to_cents
from household_ledger.periods import parse_date

MONTH_ABBREVIATIONS = [
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
]


def format_currency(amount: Any, settings: Optional[AppSettings] = None) -> str:
    """
    Format an amount with the configured symbol and separators.

        format_currency(Decimal("1234.56")) -> "R$ 1.234,56"
    """
    settings = settings or get_settings().app
    value: Decimal = to_cents(amount)
    sign = "-" if value < 0 else ""
    integer, _, cents = f"{abs(value):.2f}".partition(".")
    grouped = f"{int(integer):,}".replace(",", settings.thousands_separator)
    return f"{sign}{settings.currency_symbol} {grouped}{settings.decimal_separator}{cents}"


def format_month_label(key: str) -> str:
    """ "2024-01" -> "Jan 2024". Unknown keys are returned as they are."""
    try:
        year, month = key.split("-")
        return f"{MONTH_ABBREVIATIONS[int(month) - 1]} {int(year)}"
    except (ValueError, IndexError, AttributeError):
        return key


def format_date(value: Any) -> str:
    """Day-first date (31/01/2024); "-" when there is none."""
    parsed: Optional[date] = parse_date(value)
    if parsed is None:
        return "-"
    return parsed.strftime("%d/%m/%Y")
