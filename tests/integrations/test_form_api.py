"""Tests for the form API client: caching, rate limiting and fallback."""

import httpx
import pytest

from src.clients.store import ClientStore
from src.integrations.form_api import FormDataService
from src.orchestration.change_queue import ChangeQueue, ChangeType

SUBMISSION = {
    "vorname": "Max",
    "preisKalkulation": {"gesamtPreis": "1.800 €", "ratenzahlung": {"monate": 6}},
}


@pytest.mark.asyncio
async def test_fetch_normalizes_upstream_submission(
    form_data_service: FormDataService, form_api
) -> None:
    form_api.body = SUBMISSION

    form = await form_data_service.fetch_and_normalize("cu-1")

    assert form.honorar == 1800.0
    assert form.raten == 6
    assert form.monatliche_rate == 300.0
    assert form.fetched_at is not None
    assert form_api.requests[0].url.path == "/api/forms/cu-1"


@pytest.mark.asyncio
async def test_second_fetch_within_ttl_is_served_from_cache(
    form_data_service: FormDataService, form_api, clock
) -> None:
    form_api.body = SUBMISSION

    first = await form_data_service.fetch_and_normalize("cu-1")
    clock.advance(120)
    second = await form_data_service.fetch_and_normalize("cu-1")

    assert second == first
    assert len(form_api.requests) == 1


@pytest.mark.asyncio
async def test_stale_cache_entry_is_refetched(
    form_data_service: FormDataService, form_api, clock
) -> None:
    form_api.body = SUBMISSION
    await form_data_service.fetch_and_normalize("cu-1")

    clock.advance(301)
    await form_data_service.fetch_and_normalize("cu-1")

    assert len(form_api.requests) == 2


@pytest.mark.asyncio
async def test_force_refresh_bypasses_cache_but_respects_rate_limit(
    form_data_service: FormDataService, form_api, clock
) -> None:
    form_api.body = SUBMISSION
    await form_data_service.fetch_and_normalize("cu-1")

    clock.advance(3)
    await form_data_service.fetch_and_normalize("cu-1", force_refresh=True)

    assert len(form_api.requests) == 2
    assert clock.sleeps == [pytest.approx(7.0)]


@pytest.mark.asyncio
async def test_transport_error_returns_fallback(
    form_data_service: FormDataService, form_api
) -> None:
    form_api.error = httpx.ConnectTimeout("timed out")

    form = await form_data_service.fetch_and_normalize("cu-1")

    assert form.is_fallback is True
    assert form.honorar == 5000.0
    assert form.raten == 5


@pytest.mark.asyncio
async def test_http_error_status_returns_uncached_fallback(
    form_data_service: FormDataService, form_api, clock
) -> None:
    form_api.status_code = 503
    form_api.body = {"error": "maintenance"}

    first = await form_data_service.fetch_and_normalize("cu-1")
    clock.advance(11)
    form_api.status_code = 200
    form_api.body = SUBMISSION
    second = await form_data_service.fetch_and_normalize("cu-1")

    assert first.is_fallback is True
    assert second.is_fallback is False
    assert second.honorar == 1800.0


@pytest.mark.asyncio
async def test_garbage_body_is_not_a_fallback(
    form_data_service: FormDataService, form_api
) -> None:
    form_api.body = "<<<not json>>>"

    form = await form_data_service.fetch_and_normalize("cu-1")

    assert form.is_fallback is False
    assert form.honorar is None


@pytest.mark.asyncio
async def test_apply_to_client_persists_differences(
    form_data_service: FormDataService,
    form_api,
    store: ClientStore,
    change_queue: ChangeQueue,
) -> None:
    client = await store.create(
        {"clickup_id": "cu-1", "name": "Max", "email": "m@example.com", "phone": "1"},
        sync=False,
    )
    form_api.body = SUBMISSION
    form = await form_data_service.fetch_and_normalize("cu-1")

    changed = await form_data_service.apply_to_client(store, client, form)
    unchanged = await form_data_service.apply_to_client(store, client, form)

    assert changed is True
    assert unchanged is False
    assert client.honorar == 1800.0
    assert client.raten == 6
    assert client.monatliche_rate == 300.0
    assert [entry.change_type for entry in change_queue.drain()] == [ChangeType.UPDATE]


@pytest.mark.asyncio
async def test_apply_to_client_ignores_fallback(
    form_data_service: FormDataService, form_api, store: ClientStore
) -> None:
    client = await store.create(
        {"clickup_id": "cu-1", "name": "Max", "email": "m@example.com", "phone": "1"}
    )
    form_api.error = httpx.ConnectError("refused")
    form = await form_data_service.fetch_and_normalize("cu-1")

    assert await form_data_service.apply_to_client(store, client, form) is False
    assert client.honorar == 1111.0


@pytest.mark.asyncio
async def test_apply_to_client_keeps_count_when_rate_exceeds_fee(
    form_data_service: FormDataService, form_api, store: ClientStore
) -> None:
    client = await store.create(
        {"clickup_id": "cu-1", "name": "Max", "email": "m@example.com", "phone": "1"}
    )
    form_api.body = {
        "preisKalkulation": {"gesamtPreis": "100", "ratenzahlung": {"monatsRate": "1000"}}
    }
    form = await form_data_service.fetch_and_normalize("cu-1")

    assert await form_data_service.apply_to_client(store, client, form) is True
    assert client.honorar == 100.0
    assert client.raten == 2
    assert client.monatliche_rate == 1000.0
