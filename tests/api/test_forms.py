"""Tests for the form data endpoint."""

from __future__ import annotations

from typing import Any

import httpx
import pytest
from httpx import AsyncClient

SUBMISSION = {
    "vorname": "Erika",
    "strasse": "Bongardstraße",
    "hausnummer": "33",
    "plz": "44787",
    "wohnort": "Bochum",
    "preisKalkulation": {"gesamtPreis": "2.400 €", "ratenzahlung": {"monate": 8}},
}


async def _create(api_client: AsyncClient, payload: dict[str, Any]) -> int:
    response = await api_client.post("/api/clients", json=payload)
    assert response.status_code == 201
    return response.json()["id"]


@pytest.mark.asyncio
async def test_form_data_is_normalized_and_persisted(
    api_client: AsyncClient, client_payload: dict[str, Any], form_api
) -> None:
    client_id = await _create(api_client, client_payload)
    form_api.body = SUBMISSION

    response = await api_client.get(f"/api/clients/{client_id}/form-data")

    assert response.status_code == 200
    form = response.json()
    assert form["externalId"] == "cu-100"
    assert form["honorar"] == 2400.0
    assert form["raten"] == 8
    assert form["monatlicheRate"] == 300.0
    assert form["adresse"] == "Bongardstraße 33, 44787 Bochum"
    assert form["isFallback"] is False
    assert form_api.requests[0].url.path == "/api/forms/cu-100"

    client = (await api_client.get(f"/api/clients/{client_id}")).json()
    assert client["honorar"] == 2400.0
    assert client["raten"] == 8
    assert client["monatlicheRate"] == 300.0


@pytest.mark.asyncio
async def test_form_data_served_from_cache_until_refresh(
    api_client: AsyncClient, client_payload: dict[str, Any], form_api, clock
) -> None:
    client_id = await _create(api_client, client_payload)
    form_api.body = SUBMISSION

    await api_client.get(f"/api/clients/{client_id}/form-data")
    await api_client.get(f"/api/clients/{client_id}/form-data")
    assert len(form_api.requests) == 1

    response = await api_client.get(f"/api/clients/{client_id}/form-data?refresh=true")

    assert response.status_code == 200
    assert len(form_api.requests) == 2
    assert clock.sleeps == [pytest.approx(10.0)]


@pytest.mark.asyncio
async def test_form_data_fallback_when_upstream_unreachable(
    api_client: AsyncClient, client_payload: dict[str, Any], form_api
) -> None:
    client_id = await _create(api_client, client_payload)
    form_api.error = httpx.ConnectError("refused")

    response = await api_client.get(f"/api/clients/{client_id}/form-data")

    assert response.status_code == 200
    form = response.json()
    assert form["isFallback"] is True
    assert form["honorar"] == 5000.0
    assert form["adresse"] == "Keine Adresse vorhanden"

    client = (await api_client.get(f"/api/clients/{client_id}")).json()
    assert client["honorar"] == 1111.0


@pytest.mark.asyncio
async def test_form_data_unknown_client_returns_404(api_client: AsyncClient, form_api) -> None:
    response = await api_client.get("/api/clients/999/form-data")

    assert response.status_code == 404
    assert form_api.requests == []
