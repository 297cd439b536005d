"""Credential pool routes. Secrets are accepted but never returned."""

from fastapi import APIRouter, Depends

from ..dependencies import get_service, require_credentials
from ..schemas import CredentialIn, CredentialOut, CredentialUpdate, DeleteResponse, PinRequest, SettingsOut

router = APIRouter(prefix="/v1/credentials", tags=["Credentials"])


@router.get("", response_model=list[CredentialOut])
async def list_credentials(credentials=Depends(require_credentials)):
    pinned = await credentials.pinned_id()
    return [CredentialOut.from_credential(c, pinned) for c in await credentials.stored_credentials()]


@router.post("", response_model=CredentialOut, status_code=201)
async def add_credential(request: CredentialIn, credentials=Depends(require_credentials)):
    credential = await credentials.add(request.secret, request.display_name)
    return CredentialOut.from_credential(credential, await credentials.pinned_id())


@router.post("/pin", response_model=SettingsOut)
async def pin_credential(request: PinRequest):
    """Set (or clear, with null) the credential preferred for every request."""
    service = get_service()
    settings = await service.set_active_credential(request.credential_id)
    return SettingsOut.from_settings(settings, service.config.get_model_options())


@router.put("/{credential_id}", response_model=CredentialOut)
async def update_credential(credential_id: str, request: CredentialUpdate, credentials=Depends(require_credentials)):
    credential = await credentials.update(
        credential_id,
        display_name=request.display_name,
        is_active=request.is_active,
    )
    return CredentialOut.from_credential(credential, await credentials.pinned_id())


@router.delete("/{credential_id}", response_model=DeleteResponse)
async def delete_credential(credential_id: str, credentials=Depends(require_credentials)):
    await credentials.delete(credential_id)
    return DeleteResponse(deleted=True)
