"""Tests for form field coercions and rule lookup."""

import pytest

from src.forms.rules import (
    HONORAR_RULES,
    RATEN_RULES,
    KeySearchRule,
    PathRule,
    coerce_known_fields,
    first_match,
    lookup_path,
    parse_bool,
    parse_currency,
    parse_int,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("1.234,56 €", 1234.56),
        ("2500", 2500.0),
        ("2.500 €", 2500.0),
        ("99,9", 99.9),
        (1800, 1800.0),
        (1499.5, 1499.5),
    ],
)
def test_parse_currency(raw: object, expected: float) -> None:
    assert parse_currency(raw) == expected


@pytest.mark.parametrize("raw", ["", "kostenlos", None, True, "1,2,3"])
def test_parse_currency_rejects_unusable_values(raw: object) -> None:
    assert parse_currency(raw) is None


def test_parse_int_strips_non_digits() -> None:
    assert parse_int("12 Monate") == 12
    assert parse_int(6) == 6
    assert parse_int(6.0) == 6
    assert parse_int("keine") is None


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("true", True), ("TRUE ", True), ("false", False), ("ja", False), (1, True), (0, False), (True, True)],
)
def test_parse_bool(raw: object, expected: bool) -> None:
    assert parse_bool(raw) is expected


def test_lookup_path_decodes_stringified_objects() -> None:
    payload = {"preisKalkulation": '{"gesamtPreis": "1.800 €"}'}

    assert lookup_path(payload, ("preisKalkulation", "gesamtPreis")) == "1.800 €"
    assert lookup_path(payload, ("preisKalkulation", "missing")) is None


def test_first_match_honours_rule_order() -> None:
    rules = (
        PathRule(("a",), parse_int),
        PathRule(("b",), parse_int),
    )

    assert first_match(rules, {"a": "x", "b": "7"}) == 7
    assert first_match(rules, {"a": "3", "b": "7"}) == 3
    assert first_match(rules, {}) is None


def test_honorar_prefers_total_price() -> None:
    payload = {
        "preisKalkulation": {
            "gesamtPreis": "3.000 €",
            "standardPrice": 2000,
            "manuellerPreisBetrag": "1.000",
        }
    }

    assert first_match(HONORAR_RULES, payload) == 3000.0


def test_honorar_falls_back_to_manual_price() -> None:
    payload = {"preisKalkulation": {"manuellerPreisBetrag": "1.450,00 €"}}

    assert first_match(HONORAR_RULES, payload) == 1450.0


def test_raten_from_installment_plan_then_root() -> None:
    assert first_match(RATEN_RULES, {"preisKalkulation": {"ratenzahlung": {"anzahlRaten": "8"}}}) == 8
    assert first_match(RATEN_RULES, {"ratenzahlungMonate": "10"}) == 10


def test_raten_recursive_search_for_month_keys() -> None:
    payload = {"preisKalkulation": {"details": {"laufzeitMonate": "12"}}}

    assert first_match(RATEN_RULES, payload) == 12


def test_key_search_skips_excluded_keys() -> None:
    rule = KeySearchRule(("root",), "monat", parse_int, exclude=frozenset({"monatsrate"}))

    assert rule.apply({"root": {"monatsRate": 400}}) is None
    assert rule.apply({"root": {"monatsRate": 400, "inner": {"monate": 4}}}) == 4


def test_coerce_known_fields_only_touches_listed_fields() -> None:
    form = {"anzahlKinder": "2 Kinder", "verheiratet": "true", "vorname": "Max"}

    coerced = coerce_known_fields(form)

    assert coerced == {"anzahlKinder": 2, "verheiratet": True, "vorname": "Max"}
    assert form["anzahlKinder"] == "2 Kinder"
