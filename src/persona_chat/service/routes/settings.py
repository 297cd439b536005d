"""Chat settings routes."""

from fastapi import APIRouter

from ..dependencies import get_service
from ..schemas import SettingsOut, SettingsUpdate

router = APIRouter(prefix="/v1/settings", tags=["Settings"])


@router.get("", response_model=SettingsOut)
async def get_settings():
    service = get_service()
    settings = await service.settings_store.load()
    return SettingsOut.from_settings(settings, service.config.get_model_options())


@router.patch("", response_model=SettingsOut)
async def update_settings(request: SettingsUpdate):
    service = get_service()
    updates = {
        name: (int(value) if value is not None else None)
        for name, value in request.model_dump(exclude_unset=True).items()
    }
    # Only the thinking budget may be cleared
    updates = {k: v for k, v in updates.items() if v is not None or k == "thinking_budget"}
    settings = await service.settings_store.update(**updates)
    return SettingsOut.from_settings(settings, service.config.get_model_options())
