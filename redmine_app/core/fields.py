"""Typed reads from an issue's custom field list.

All accessors are total: a missing, null, or malformed field never raises, it
resolves to an empty string (text), ``0`` (numbers) or ``False`` (presence).

Two resolution strategies exist:

- ``EXACT_NAME``: the first field whose name equals the requested name.
- ``DIGIT_STRIPPED``: exact first, then the first field whose name with all
  digits removed equals the requested name with digits removed. Period columns
  on the progress page use this to survive renamed quarter fields; everything
  else uses exact matching.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass

from .config import ZERO_LITERALS, FieldTag
from .field_config import field_name
from .models import CustomField, FieldValue, IssueModel

_DIGITS = re.compile(r"\d")
_NON_NUMERIC = re.compile(r"[^\d.\-]")


def _strip_digits(name: str) -> str:
    return _DIGITS.sub("", name).strip()


def _match_exact(fields: list[CustomField], name: str) -> CustomField | None:
    for f in fields:
        if f.name == name:
            return f
    return None


def _match_digit_stripped(fields: list[CustomField], name: str) -> CustomField | None:
    found = _match_exact(fields, name)
    if found is not None:
        return found
    target = _strip_digits(name)
    for f in fields:
        if _strip_digits(f.name) == target:
            return f
    return None


@dataclass(frozen=True, slots=True)
class ResolutionStrategy:
    name: str
    match: Callable[[list[CustomField], str], CustomField | None]


EXACT_NAME = ResolutionStrategy("exact_name", _match_exact)
DIGIT_STRIPPED = ResolutionStrategy("digit_stripped", _match_digit_stripped)


def _as_text(value: FieldValue) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return ", ".join(str(v) for v in value if v is not None)
    return str(value)


def resolve_field(
    item: IssueModel, field_name_: str, strategy: ResolutionStrategy = EXACT_NAME
) -> CustomField | None:
    return strategy.match(item.custom_fields.fields, field_name_)


def get_field_value(item: IssueModel, name: str, strategy: ResolutionStrategy = EXACT_NAME) -> str:
    found = resolve_field(item, name, strategy)
    if found is None:
        return ""
    return _as_text(found.value)


def is_zero_literal(value) -> bool:
    if value is None:
        return True
    if isinstance(value, (int, float)):
        return value == 0
    return str(value).strip() in ZERO_LITERALS


def field_has_value(item: IssueModel, name: str, strategy: ResolutionStrategy = EXACT_NAME) -> bool:
    return not is_zero_literal(get_field_value(item, name, strategy))


def parse_number(text) -> float:
    """Parse a loosely formatted number (``"1,200 ton"`` -> 1200.0); 0 when unparsable."""
    if text is None:
        return 0.0
    if isinstance(text, (int, float)):
        return float(text)
    cleaned = _NON_NUMERIC.sub("", str(text))
    try:
        return float(cleaned)
    except ValueError:
        return 0.0


def get_field_number(item: IssueModel, name: str, strategy: ResolutionStrategy = EXACT_NAME) -> float:
    return parse_number(get_field_value(item, name, strategy))


def get_weight(item: IssueModel) -> float:
    raw = get_field_value(item, field_name(FieldTag.WEIGHT)).strip()
    if not raw:
        return 0.0
    try:
        weight = float(raw)
    except ValueError:
        return 0.0
    if weight != weight or weight in (float("inf"), float("-inf")):
        return 0.0
    return weight


def tag_value(item: IssueModel, tag: FieldTag) -> str:
    return _as_text(item.custom_fields.tagged.get(tag))


def tag_has_value(item: IssueModel, tag: FieldTag) -> bool:
    return field_has_value(item, field_name(tag))
