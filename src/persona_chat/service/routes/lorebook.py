"""Lorebook entry routes."""

from fastapi import APIRouter

from ...errors import LorebookNotFoundError
from ..dependencies import get_service
from ..schemas import DeleteResponse, LorebookEntryIn, LorebookEntryOut, LorebookEntryUpdate

router = APIRouter(prefix="/v1/lorebook", tags=["Lorebook"])


@router.get("", response_model=list[LorebookEntryOut])
async def list_entries():
    entries = await get_service().lorebook.list_entries()
    return [LorebookEntryOut.from_entry(e) for e in entries]


@router.post("", response_model=LorebookEntryOut, status_code=201)
async def add_entry(request: LorebookEntryIn):
    entry = await get_service().lorebook.add(request.keywords, request.content, request.enabled)
    return LorebookEntryOut.from_entry(entry)


@router.get("/{entry_id}", response_model=LorebookEntryOut)
async def get_entry(entry_id: str):
    return LorebookEntryOut.from_entry(await get_service().lorebook.get(entry_id))


@router.put("/{entry_id}", response_model=LorebookEntryOut)
async def update_entry(entry_id: str, request: LorebookEntryUpdate):
    entry = await get_service().lorebook.update(
        entry_id,
        keywords=request.keywords,
        content=request.content,
        enabled=request.enabled,
    )
    return LorebookEntryOut.from_entry(entry)


@router.delete("/{entry_id}", response_model=DeleteResponse)
async def delete_entry(entry_id: str):
    if not await get_service().lorebook.delete(entry_id):
        raise LorebookNotFoundError(f"Lorebook entry not found: {entry_id}")
    return DeleteResponse(deleted=True)
