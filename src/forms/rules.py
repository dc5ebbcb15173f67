"""Prioritized field rules for reshaping form submissions.

Upstream form payloads carry the same logical value under different keys,
nesting levels and types. Each logical field is described by an ordered
list of rules; the first rule that yields a usable value wins.
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import orjson

Coercion = Callable[[Any], Any]

_NON_CURRENCY_CHARS = re.compile(r"[^\d,]")
_NON_DIGITS = re.compile(r"\D")


def parse_currency(value: Any) -> float | None:
    """Coerce a currency amount such as "1.234,56 €" to 1234.56.

    Everything but digits and commas is dropped, then the comma becomes the
    decimal point.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    cleaned = _NON_CURRENCY_CHARS.sub("", str(value)).replace(",", ".")
    if not cleaned:
        return None
    try:
        return float(cleaned)
    except ValueError:
        return None


def parse_int(value: Any) -> int | None:
    """Coerce to int by stripping every non-digit character."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    digits = _NON_DIGITS.sub("", str(value))
    return int(digits) if digits else None


def parse_positive_int(value: Any) -> int | None:
    number = parse_int(value)
    return number if number is not None and number > 0 else None


def parse_bool(value: Any) -> bool:
    """Strings are true only when they read "true"; numbers when non-zero."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return False


def parse_text(value: Any) -> str | None:
    if value is None or isinstance(value, (Mapping, list)):
        return None
    text = str(value).strip()
    return text or None


def _as_mapping(value: Any) -> Mapping[str, Any] | None:
    """Return a mapping, decoding JSON-object strings on the way."""
    if isinstance(value, Mapping):
        return value
    if isinstance(value, str) and value.lstrip().startswith("{"):
        try:
            decoded = orjson.loads(value)
        except orjson.JSONDecodeError:
            return None
        if isinstance(decoded, Mapping):
            return decoded
    return None


def lookup_path(payload: Mapping[str, Any], path: Sequence[str]) -> Any:
    """Follow `path` through nested mappings; None when any step is missing."""
    current: Any = payload
    for key in path:
        mapping = _as_mapping(current)
        if mapping is None or key not in mapping:
            return None
        current = mapping[key]
    return current


@dataclass(frozen=True)
class PathRule:
    """Read the value at a fixed path and coerce it."""

    path: tuple[str, ...]
    coerce: Coercion

    def apply(self, payload: Mapping[str, Any]) -> Any:
        value = lookup_path(payload, self.path)
        if value is None:
            return None
        return self.coerce(value)


@dataclass(frozen=True)
class KeySearchRule:
    """Depth-first search below `root` for a key containing `needle`.

    Keys listed in `exclude` are never matched, so that e.g. "monatsRate"
    is not mistaken for an installment count.
    """

    root: tuple[str, ...]
    needle: str
    coerce: Coercion
    exclude: frozenset[str] = frozenset()

    def apply(self, payload: Mapping[str, Any]) -> Any:
        start = _as_mapping(lookup_path(payload, self.root))
        if start is None:
            return None
        return self._search(start)

    def _search(self, mapping: Mapping[str, Any]) -> Any:
        for key, value in mapping.items():
            lowered = str(key).lower()
            if self.needle in lowered and lowered not in self.exclude:
                coerced = self.coerce(value)
                if coerced is not None:
                    return coerced
        for value in mapping.values():
            nested = _as_mapping(value)
            if nested is not None:
                found = self._search(nested)
                if found is not None:
                    return found
        return None


Rule = PathRule | KeySearchRule


def first_match(rules: Iterable[Rule], payload: Mapping[str, Any]) -> Any:
    """Value of the first rule that produces one."""
    for rule in rules:
        value = rule.apply(payload)
        if value is not None:
            return value
    return None


PRICE = ("preisKalkulation",)
INSTALLMENT_PLAN = ("preisKalkulation", "ratenzahlung")

INSTALLMENT_COUNT_KEYS = ("monate", "monat", "raten", "anzahlRaten", "anzahl")
MONTHLY_RATE_KEYS = ("monatsRate", "rate", "monthlyRate", "ratenhoehe", "betrag")

HONORAR_RULES: tuple[Rule, ...] = (
    PathRule((*PRICE, "gesamtPreis"), parse_currency),
    PathRule((*PRICE, "standardPrice"), parse_currency),
    PathRule((*PRICE, "manuellerPreisBetrag"), parse_currency),
)

RATEN_RULES: tuple[Rule, ...] = (
    *(PathRule((*INSTALLMENT_PLAN, key), parse_positive_int) for key in INSTALLMENT_COUNT_KEYS),
    PathRule(("ratenzahlungMonate",), parse_positive_int),
    KeySearchRule(
        PRICE,
        "monat",
        parse_positive_int,
        exclude=frozenset(key.lower() for key in MONTHLY_RATE_KEYS),
    ),
)

MONTHLY_RATE_RULES: tuple[Rule, ...] = tuple(
    PathRule((*INSTALLMENT_PLAN, key), parse_currency) for key in MONTHLY_RATE_KEYS
)

RATEN_START_RULES: tuple[Rule, ...] = (
    PathRule(("ratenStart",), parse_text),
    PathRule((*INSTALLMENT_PLAN, "ratenStart"), parse_text),
    PathRule((*INSTALLMENT_PLAN, "startDatum"), parse_text),
)

NUMERIC_FIELDS = frozenset(
    {
        "alter",
        "anzahlKinder",
        "anzahlGlaeubiger",
        "nettoEinkommen",
        "gesamtSchulden",
        "ratenzahlungMonate",
        "unterhaltspflichten",
    }
)

BOOLEAN_FIELDS = frozenset(
    {
        "verheiratet",
        "selbststaendig",
        "arbeitslos",
        "immobilienBesitz",
        "kfzBesitz",
        "pfaendungVorhanden",
        "schufaEintrag",
        "datenschutzAkzeptiert",
    }
)


def coerce_known_fields(form: Mapping[str, Any]) -> dict[str, Any]:
    """Copy `form`, normalizing the types of well-known top-level fields."""
    coerced = dict(form)
    for key, value in form.items():
        if key in NUMERIC_FIELDS:
            coerced[key] = parse_int(value)
        elif key in BOOLEAN_FIELDS:
            coerced[key] = parse_bool(value)
    return coerced


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)
