"""Turn raw form submissions into client engagement fields."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

import orjson
from pydantic import Field

from src.clients.schemas import CamelModel
from src.core.logging import get_logger
from src.forms.rules import (
    HONORAR_RULES,
    MONTHLY_RATE_RULES,
    RATEN_RULES,
    RATEN_START_RULES,
    coerce_known_fields,
    first_match,
    parse_text,
    round_half_up,
)

logger = get_logger(__name__)

FALLBACK_HONORAR = 5000.0
FALLBACK_RATEN = 5
FALLBACK_RATEN_START = "01.01.2025"
FALLBACK_ADDRESS = "Keine Adresse vorhanden"


class NormalizedForm(CamelModel):
    """Engagement fields derived from one form submission."""

    external_id: str
    honorar: float | None = None
    raten: int | None = None
    monatliche_rate: float | None = None
    raten_start: str | None = None
    adresse: str | None = None
    fields: dict[str, Any] = Field(default_factory=dict)
    is_fallback: bool = False
    fetched_at: datetime | None = None


def parse_payload(body: Any) -> dict[str, Any]:
    """Decode an upstream body into a dict.

    String bodies get a strict parse, then one retry after stripping
    escaped quotes and backslashes. Anything that still fails, or that is
    not a JSON object, becomes an empty record.
    """
    if isinstance(body, Mapping):
        return dict(body)
    if isinstance(body, (bytes, bytearray)):
        body = body.decode("utf-8", errors="replace")
    if not isinstance(body, str):
        return {}

    decoded = _loads(body)
    if decoded is None:
        cleaned = body.replace('\\"', '"').replace("\\", "").strip()
        if len(cleaned) >= 2 and cleaned[0] == cleaned[-1] == '"':
            cleaned = cleaned[1:-1]
        decoded = _loads(cleaned)
        if decoded is None:
            logger.warning("form_payload_unparseable", length=len(body))
            return {}

    # Double-encoded JSON arrives as a string holding the object.
    if isinstance(decoded, str):
        decoded = _loads(decoded)
    if not isinstance(decoded, Mapping):
        logger.warning("form_payload_not_an_object", kind=type(decoded).__name__)
        return {}
    return dict(decoded)


def _loads(text: str) -> Any:
    try:
        return orjson.loads(text)
    except orjson.JSONDecodeError:
        return None


def derive_installments(
    honorar: float | None,
    raten: int | None,
    monatliche_rate: float | None,
) -> tuple[int | None, float | None]:
    """Fill in whichever of installment count and monthly rate is missing."""
    if monatliche_rate is None and honorar is not None and raten:
        monatliche_rate = round(honorar / raten, 2)
    elif raten is None and honorar is not None and monatliche_rate:
        derived = round_half_up(honorar / monatliche_rate)
        # A rate above the fee rounds to zero installments.
        raten = derived if derived >= 1 else None
    return raten, monatliche_rate


def build_address(form: Mapping[str, Any]) -> str | None:
    """Join street and town parts that are present, comma separated."""
    street = parse_text(form.get("strasse"))
    if street:
        number = parse_text(form.get("hausnummer"))
        street = f"{street} {number}" if number else street

    town = parse_text(form.get("wohnort")) or parse_text(form.get("ort"))
    city = " ".join(part for part in (parse_text(form.get("plz")), town) if part)

    parts = [part for part in (street, city) if part]
    return ", ".join(parts) if parts else None


def normalize_form(external_id: str, body: Any) -> NormalizedForm:
    """Parse and reshape an upstream form submission."""
    form = parse_payload(body)

    honorar = first_match(HONORAR_RULES, form)
    raten = first_match(RATEN_RULES, form)
    monatliche_rate = first_match(MONTHLY_RATE_RULES, form)
    raten, monatliche_rate = derive_installments(honorar, raten, monatliche_rate)

    return NormalizedForm(
        external_id=external_id,
        honorar=honorar,
        raten=raten,
        monatliche_rate=monatliche_rate,
        raten_start=first_match(RATEN_START_RULES, form),
        adresse=build_address(form),
        fields=coerce_known_fields(form),
    )


def fallback_form(external_id: str) -> NormalizedForm:
    """Placeholder profile shown when the form API cannot be reached."""
    return NormalizedForm(
        external_id=external_id,
        honorar=FALLBACK_HONORAR,
        raten=FALLBACK_RATEN,
        monatliche_rate=round(FALLBACK_HONORAR / FALLBACK_RATEN, 2),
        raten_start=FALLBACK_RATEN_START,
        adresse=FALLBACK_ADDRESS,
        is_fallback=True,
    )
