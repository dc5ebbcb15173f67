"""Form submission endpoint."""

from fastapi import APIRouter, Depends, HTTPException, Query

from src.api.deps import FormData, Store, bind_client_context
from src.clients.store import ClientNotFoundError
from src.forms.normalizer import NormalizedForm

router = APIRouter(
    prefix="/api/clients/{client_id}",
    tags=["forms"],
    dependencies=[Depends(bind_client_context)],
)


@router.get("/form-data", response_model=NormalizedForm)
async def get_form_data(
    client_id: int,
    store: Store,
    forms: FormData,
    refresh: bool = Query(default=False),
) -> NormalizedForm:
    """Normalized form submission for the client.

    Fee and installment values from a real submission are written back to
    the client when they differ. When the form API is unreachable a
    placeholder profile (`isFallback: true`) is returned instead.
    """
    try:
        client = await store.get(client_id)
    except ClientNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Client not found") from exc

    form = await forms.fetch_and_normalize(client.clickup_id, force_refresh=refresh)
    await forms.apply_to_client(store, client, form)
    return form
