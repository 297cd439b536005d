"""Send, reroll, edit and summarize routes."""

from fastapi import APIRouter

from ..dependencies import get_service
from ..schemas import (
    EditMessageRequest,
    MessageOut,
    ReplyResponse,
    RerollRequest,
    SendMessageRequest,
    SummaryResponse,
)

router = APIRouter(prefix="/v1/conversations", tags=["Chat"])


def _reply(result, index: int) -> ReplyResponse:
    return ReplyResponse(
        conversation_id=result.conversation.id,
        reply=MessageOut.from_message(result.reply, index),
        message_count=result.conversation.message_count,
        token_estimate=result.token_estimate,
        summary_scheduled=result.summary_scheduled,
    )


@router.post("/{conversation_id}/messages", response_model=ReplyResponse)
async def send_message(conversation_id: str, request: SendMessageRequest):
    """Send a user message and return the assistant reply.

    Summarization may start in the background once enough unsummarized
    messages have accumulated; the reply never waits for it.
    """
    result = await get_service().send_message(conversation_id, request.text)
    return _reply(result, result.conversation.message_count - 1)


@router.post("/{conversation_id}/reroll", response_model=ReplyResponse)
async def reroll(conversation_id: str, request: RerollRequest | None = None):
    index = request.index if request else None
    result = await get_service().reroll(conversation_id, index)
    return _reply(result, result.conversation.message_count - 1)


@router.put("/{conversation_id}/messages/{index}", response_model=MessageOut)
async def edit_message(conversation_id: str, index: int, request: EditMessageRequest):
    message = await get_service().edit_message(conversation_id, index, request.text)
    return MessageOut.from_message(message, index)


@router.post("/{conversation_id}/summarize", response_model=SummaryResponse)
async def summarize_now(conversation_id: str):
    conversation = await get_service().summarize_now(conversation_id)
    return SummaryResponse(
        conversation_id=conversation.id,
        context_summary=conversation.context_summary,
        summary_checkpoint=conversation.summary_checkpoint,
        message_count=conversation.message_count,
    )
