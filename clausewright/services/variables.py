"""Placeholder grammar and type-directed formatting of project values.

Both ingestion-time extraction and generation-time substitution import
PLACEHOLDER_PATTERN from here so the two can never drift apart.
"""
import re
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

VARIABLE_NAME = re.compile(r"[A-Z0-9_]+")
PLACEHOLDER_PATTERN = re.compile(r"\{\{(" + VARIABLE_NAME.pattern + r")\}\}")

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


class ValueKind(str, Enum):
    BOOL = "bool"
    NUMBER = "number"
    DATE = "date"
    STRING = "string"
    ARRAY = "array"
    MISSING = "missing"


def value_kind(value: Any) -> ValueKind:
    # bool is a subclass of int, so it must be checked first
    if value is None:
        return ValueKind.MISSING
    if isinstance(value, bool):
        return ValueKind.BOOL
    if isinstance(value, (int, float, Decimal)):
        return ValueKind.NUMBER
    if isinstance(value, (date, datetime)):
        return ValueKind.DATE
    if isinstance(value, (list, tuple)):
        return ValueKind.ARRAY
    return ValueKind.STRING


def format_number(value: int | float | Decimal) -> str:
    """1234567 -> "1,234,567"; 1234.5 -> "1,234.5"."""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, int):
        return f"{value:,}"
    text = f"{value:,.3f}".rstrip("0")
    return text.rstrip(".")


def format_date(value: date | datetime) -> str:
    """2025-01-15 -> "January 15, 2025"."""
    return f"{value:%B} {value.day}, {value.year}"


def format_date_short(value: date | datetime) -> str:
    """2025-01-15 -> "01/15/2025"."""
    return f"{value:%m/%d/%Y}"


def format_currency(dollars: int | float | Decimal | None) -> str:
    if dollars is None:
        return ""
    sign = "-" if dollars < 0 else ""
    return f"{sign}${abs(dollars):,.2f}"


def format_cents_as_currency(cents: int | None) -> str:
    """123456 -> "$1,234.56"."""
    if cents is None:
        return ""
    return format_currency(Decimal(cents) / 100)


def format_percent(value: int | float | None) -> str:
    if value is None:
        return ""
    return f"{format_number(value)}%"


def format_value(value: Any) -> str | None:
    """Render a project value as display text. Returns None for a missing value."""
    kind = value_kind(value)
    if kind is ValueKind.MISSING:
        return None
    if kind is ValueKind.BOOL:
        return "Yes" if value else "No"
    if kind is ValueKind.NUMBER:
        return format_number(value)
    if kind is ValueKind.DATE:
        return format_date(value)
    if kind is ValueKind.ARRAY:
        separator = "; " if any(isinstance(item, Mapping) for item in value) else ", "
        return separator.join(text for text in (format_value(item) for item in value) if text is not None)
    if isinstance(value, Mapping):
        return ", ".join(f"{key}: {format_value(item) or ''}" for key, item in value.items())
    return str(value)


def extract_variables(text: str) -> list[str]:
    """Distinct placeholder names in first-occurrence order."""
    return list(dict.fromkeys(PLACEHOLDER_PATTERN.findall(text or "")))


def to_variable_name(key: str) -> str:
    """projectName -> PROJECT_NAME, site-address -> SITE_ADDRESS."""
    name = _CAMEL_BOUNDARY.sub("_", str(key))
    return re.sub(r"[^A-Za-z0-9]+", "_", name).strip("_").upper()


def build_variable_map(data_bag: Mapping[str, Any]) -> dict[str, Any]:
    """Flatten project data into UPPER_SNAKE variable names.

    Nested mappings join keys with "_" and list items are numbered from 1, so
    {"units": [{"model": "D1"}]} yields UNITS_1_MODEL. Keys already written in
    variable form take precedence over flattened collisions.
    """
    flat: dict[str, Any] = {}

    def visit(prefix: str, value: Any) -> None:
        if isinstance(value, Mapping):
            for key, child in value.items():
                visit(f"{prefix}_{to_variable_name(key)}" if prefix else to_variable_name(key), child)
            return
        if isinstance(value, (list, tuple)) and any(isinstance(item, Mapping) for item in value):
            for index, item in enumerate(value, start=1):
                visit(f"{prefix}_{index}", item)
            return
        flat.setdefault(prefix, value)

    for key, value in data_bag.items():
        if VARIABLE_NAME.fullmatch(key) and not isinstance(value, Mapping):
            flat[key] = value
    for key, value in data_bag.items():
        visit(to_variable_name(key), value)
    return flat


def derive_flags(data_bag: Mapping[str, Any], today: date | None = None) -> dict[str, Any]:
    """Merge the derived boolean flags every resolution needs into a copy of the bag."""
    today = today or date.today()
    enriched = dict(data_bag)
    service_model = data_bag.get("SERVICE_MODEL")
    enriched["IS_CRC"] = service_model == "CRC"
    enriched["IS_CMOS"] = service_model == "CMOS"
    enriched["CONTRACT_DATE"] = data_bag.get("CONTRACT_DATE") or today.isoformat()
    return enriched
