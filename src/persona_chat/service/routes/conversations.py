"""Conversation lifecycle and field-setter routes."""

from fastapi import APIRouter, Query

from ...personas import Character
from ..dependencies import get_service
from ..schemas import (
    ConversationDetail,
    ConversationInfo,
    ConversationListResponse,
    CreateConversationRequest,
    DeleteResponse,
    MessageOut,
    MessageWindowResponse,
    ModelRequest,
    NoteRequest,
    PersonaRequest,
    TitleRequest,
)

router = APIRouter(prefix="/v1/conversations", tags=["Conversations"])


def _detail(conversation) -> ConversationDetail:
    state = get_service().scheduler.state(conversation.id)
    return ConversationDetail.from_conversation(conversation, summary_state=state.value)


@router.post("", response_model=ConversationDetail, status_code=201)
async def create_conversation(request: CreateConversationRequest):
    service = get_service()
    conversation = await service.create_conversation(
        persona_name=request.persona_name,
        persona_instructions=request.persona_instructions,
        model_selector=request.model,
    )
    return _detail(conversation)


@router.get("", response_model=ConversationListResponse)
async def list_conversations():
    conversations = await get_service().list_conversations()
    return ConversationListResponse(
        conversations=[ConversationInfo.from_conversation(c) for c in conversations],
        total=len(conversations),
    )


@router.get("/{conversation_id}", response_model=ConversationDetail)
async def get_conversation(conversation_id: str):
    return _detail(await get_service().get_conversation(conversation_id))


@router.get("/{conversation_id}/messages", response_model=MessageWindowResponse)
async def get_message_window(
    conversation_id: str,
    start: int = Query(0, ge=0),
    count: int = Query(50, ge=0, le=500),
):
    """Paginated read of the stored messages (independent of the prompt window)."""
    service = get_service()
    conversation = await service.get_conversation(conversation_id)
    messages = await service.load_window(conversation_id, start, count)
    return MessageWindowResponse(
        conversation_id=conversation_id,
        start=start,
        total=conversation.message_count,
        messages=[MessageOut.from_message(m, start + i) for i, m in enumerate(messages)],
    )


@router.delete("/{conversation_id}", response_model=DeleteResponse)
async def delete_conversation(conversation_id: str):
    service = get_service()
    await service.get_conversation(conversation_id)
    return DeleteResponse(deleted=await service.delete_conversation(conversation_id))


@router.put("/{conversation_id}/title", response_model=ConversationDetail)
async def set_title(conversation_id: str, request: TitleRequest):
    return _detail(await get_service().set_title(conversation_id, request.title.strip()))


@router.put("/{conversation_id}/persona", response_model=ConversationDetail)
async def set_persona(conversation_id: str, request: PersonaRequest):
    service = get_service()
    if request.character is not None:
        conversation = await service.set_character(conversation_id, Character(**request.character.model_dump()))
    else:
        conversation = await service.set_persona(conversation_id, request.name.strip(), request.instructions or "")
    return _detail(conversation)


@router.put("/{conversation_id}/note", response_model=ConversationDetail)
async def set_user_note(conversation_id: str, request: NoteRequest):
    return _detail(await get_service().set_user_note(conversation_id, request.note))


@router.put("/{conversation_id}/model", response_model=ConversationDetail)
async def set_model(conversation_id: str, request: ModelRequest):
    return _detail(await get_service().set_model(conversation_id, request.model))
