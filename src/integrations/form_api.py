"""Client for the third-party form submission API."""

from __future__ import annotations

from urllib.parse import quote

import httpx

from src.clients.store import ClientStore
from src.core.config import settings
from src.core.logging import get_logger
from src.forms.cache import FormDataCache, RateLimiter
from src.forms.normalizer import NormalizedForm, fallback_form, normalize_form
from src.models.base import utcnow
from src.models.client import Client

logger = get_logger(__name__)


class FormDataService:
    """Fetches, normalizes and caches a client's form submission.

    Upstream calls share one rate limiter. When the API cannot be reached,
    or answers with an error status, a fixed fallback profile is returned
    instead of raising; fallbacks are never cached.
    """

    def __init__(
        self,
        cache: FormDataCache,
        rate_limiter: RateLimiter,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.cache = cache
        self.rate_limiter = rate_limiter
        self.http_client = http_client or httpx.AsyncClient(
            base_url=settings.form_api_base_url,
            timeout=settings.form_api_timeout,
        )

    async def aclose(self) -> None:
        await self.http_client.aclose()

    async def fetch_and_normalize(
        self, external_id: str, *, force_refresh: bool = False
    ) -> NormalizedForm:
        """Return the normalized form for `external_id`.

        Args:
            external_id: ClickUp id of the client.
            force_refresh: Skip the cache and hit the upstream API.
        """
        if not force_refresh:
            cached = await self.cache.get(external_id)
            if cached is not None:
                logger.debug("form_cache_hit", external_id=external_id)
                return cached

        await self.rate_limiter.acquire()
        try:
            response = await self.http_client.get(f"/api/forms/{quote(external_id, safe='')}")
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning(
                "form_api_unavailable",
                external_id=external_id,
                error=str(exc),
            )
            return fallback_form(external_id)

        form = normalize_form(external_id, response.text).model_copy(
            update={"fetched_at": utcnow()}
        )
        await self.cache.set(form)
        logger.info(
            "form_data_fetched",
            external_id=external_id,
            honorar=form.honorar,
            raten=form.raten,
        )
        return form

    async def apply_to_client(
        self, store: ClientStore, client: Client, form: NormalizedForm
    ) -> bool:
        """Copy fee and installment values that differ onto the client.

        Returns:
            True if the client was updated.
        """
        if form.is_fallback:
            return False

        changes = {
            field: value
            for field, value in (
                ("honorar", form.honorar),
                ("raten", form.raten),
                ("monatliche_rate", form.monatliche_rate),
            )
            if value is not None
            and getattr(client, field) != value
            and not (field == "raten" and value < 1)
        }
        if not changes:
            return False

        await store.update(client.id, changes)
        logger.info("client_updated_from_form", client_id=client.id, fields=sorted(changes))
        return True
