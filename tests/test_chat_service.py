"""End-to-end tests for the chat service."""

from __future__ import annotations

import asyncio

import pytest

from persona_chat.errors import (
    ConversationBusyError,
    InvalidRequestError,
    MessageIndexError,
    QuotaExceededError,
)
from persona_chat.personas import Character
from persona_chat.settings import OutputLength


def test_ten_turns_trigger_one_summary(make_service, fake_provider) -> None:
    provider = fake_provider()
    service = make_service(provider)

    async def scenario():
        conversation = await service.create_conversation(persona_name="Mina")
        checkpoints = []
        scheduled = []
        for turn in range(10):
            result = await service.send_message(conversation.id, f"turn {turn}")
            scheduled.append(result.summary_scheduled)
            checkpoints.append(result.conversation.summary_checkpoint)
        await service.scheduler.wait_idle()
        after_summary = await service.get_conversation(conversation.id)

        result = await service.send_message(conversation.id, "one more")
        await service.scheduler.wait_idle()
        return scheduled, checkpoints, after_summary, result

    scheduled, checkpoints, after_summary, result = asyncio.run(scenario())

    assert scheduled == [False] * 9 + [True]
    assert checkpoints == [0] * 10
    assert after_summary.message_count == 20
    assert after_summary.summary_checkpoint == 20
    assert after_summary.context_summary
    assert result.summary_scheduled is False
    assert result.conversation.summary_checkpoint == 20
    assert result.conversation.message_count == 22
    assert len(provider.summary_calls) == 1


def test_summary_is_sent_with_following_requests(make_service, fake_provider) -> None:
    provider = fake_provider()
    service = make_service(provider)

    async def scenario():
        conversation = await service.create_conversation()
        for turn in range(10):
            await service.send_message(conversation.id, f"turn {turn}")
        await service.scheduler.wait_idle()
        await service.send_message(conversation.id, "after summary")

    asyncio.run(scenario())
    last = provider.chat_calls[-1]
    assert "summary #1" in last.system_instruction
    # 21 stored messages before the reply; only the last 20 are sent
    assert len(last.turns) == 21
    assert last.turns[0]["parts"][0]["text"] == "Let's begin."
    assert last.turns[-1]["parts"][0]["text"] == "after summary"


def test_user_message_is_appended_before_the_request(make_service, fake_provider) -> None:
    provider = fake_provider()
    service = make_service(provider)

    async def scenario():
        conversation = await service.create_conversation(persona_name="Mina", persona_instructions="Loves tea.")
        return await service.send_message(conversation.id, "Hello Mina")

    result = asyncio.run(scenario())
    request = provider.chat_calls[0]
    assert request.turns == [{"role": "user", "parts": [{"text": "Hello Mina"}]}]
    assert request.system_instruction.startswith("You are Mina.")
    assert "Loves tea." in request.system_instruction
    assert result.reply.content == "reply #1"
    assert result.conversation.title == "Hello Mina"


def test_failed_send_appends_apology_and_raises(make_service, fake_provider) -> None:
    def handler(request, credential):
        raise QuotaExceededError("API quota exceeded. Try again in about 30 seconds.", retry_after_seconds=30)

    service = make_service(fake_provider(handler))

    async def scenario():
        conversation = await service.create_conversation()
        with pytest.raises(QuotaExceededError):
            await service.send_message(conversation.id, "are you there?")
        return await service.get_conversation(conversation.id)

    conversation = asyncio.run(scenario())
    assert [m.role for m in conversation.messages] == ["user", "assistant"]
    assert conversation.messages[0].content == "are you there?"
    assert conversation.messages[1].content.startswith(service.config.FAILED_REPLY_MESSAGE)
    assert "30 seconds" in conversation.messages[1].content
    assert not service.is_busy(conversation.id)


def test_concurrent_send_is_rejected(make_service, fake_provider) -> None:
    release = asyncio.Event()

    async def slow(request, credential):
        await release.wait()
        return "slow reply"

    service = make_service(fake_provider(slow))

    async def scenario():
        conversation = await service.create_conversation()
        first = asyncio.create_task(service.send_message(conversation.id, "first"))
        await asyncio.sleep(0)
        while not service.is_busy(conversation.id):
            await asyncio.sleep(0)
        with pytest.raises(ConversationBusyError):
            await service.send_message(conversation.id, "second")
        release.set()
        return await first

    result = asyncio.run(scenario())
    assert result.reply.content == "slow reply"
    assert result.conversation.message_count == 2


def test_empty_message_is_rejected(make_service) -> None:
    service = make_service()

    async def scenario():
        conversation = await service.create_conversation()
        await service.send_message(conversation.id, "   ")

    with pytest.raises(InvalidRequestError):
        asyncio.run(scenario())


def test_reroll_last_replaces_latest_reply(make_service, fake_provider) -> None:
    provider = fake_provider()
    service = make_service(provider)

    async def scenario():
        conversation = await service.create_conversation()
        for turn in range(3):
            await service.send_message(conversation.id, f"turn {turn}")
        return await service.reroll_last(conversation.id)

    result = asyncio.run(scenario())
    assert result.conversation.message_count == 6
    assert result.reply.content == "reply #4"
    assert result.conversation.messages[5].content == "reply #4"
    # The reroll request ends at the user turn that preceded the replaced reply
    assert provider.chat_calls[-1].turns[-1]["parts"][0]["text"] == "turn 2"


def test_reroll_middle_truncates(make_service, fake_provider) -> None:
    provider = fake_provider()
    service = make_service(provider)

    async def scenario():
        conversation = await service.create_conversation()
        for turn in range(3):
            await service.send_message(conversation.id, f"turn {turn}")
        return await service.reroll(conversation.id, 3)

    result = asyncio.run(scenario())
    assert result.conversation.message_count == 4
    assert [m.content for m in result.conversation.messages] == ["turn 0", "reply #1", "turn 1", "reply #4"]


def test_reroll_failure_leaves_history_untouched(make_service, fake_provider) -> None:
    calls = {"n": 0}

    def handler(request, credential):
        calls["n"] += 1
        if calls["n"] > 1:
            raise QuotaExceededError("quota")
        return "original"

    service = make_service(fake_provider(handler))

    async def scenario():
        conversation = await service.create_conversation()
        await service.send_message(conversation.id, "hi")
        with pytest.raises(QuotaExceededError):
            await service.reroll_last(conversation.id)
        return await service.get_conversation(conversation.id)

    conversation = asyncio.run(scenario())
    assert [m.content for m in conversation.messages] == ["hi", "original"]


def test_reroll_waits_for_pending_summary(make_service, fake_provider) -> None:
    provider = fake_provider()
    service = make_service(provider)

    async def scenario():
        conversation = await service.create_conversation()
        for turn in range(10):
            result = await service.send_message(conversation.id, f"turn {turn}")
        assert result.summary_scheduled
        with pytest.raises(MessageIndexError):
            await service.reroll_last(conversation.id)
        return await service.get_conversation(conversation.id)

    conversation = asyncio.run(scenario())
    assert conversation.summary_checkpoint == 20
    assert conversation.message_count == 20
    assert conversation.messages[-1].content == "reply #10"
    assert len(provider.chat_calls) == 10


def test_reroll_without_assistant_message_fails(make_service) -> None:
    service = make_service()

    async def scenario():
        conversation = await service.create_conversation()
        await service.reroll_last(conversation.id)

    with pytest.raises(MessageIndexError):
        asyncio.run(scenario())


def test_persona_note_and_lorebook_reach_the_next_request(make_service, fake_provider) -> None:
    provider = fake_provider()
    service = make_service(provider)

    async def scenario():
        conversation = await service.create_conversation()
        await service.send_message(conversation.id, "hello")
        await service.set_character(conversation.id, Character(
            name="Rin", relationship="old friend", personality="Calm and curious.", traits=["kind"],
        ))
        await service.set_user_note(conversation.id, "We are on a space station.")
        await service.lorebook.add(["airlock"], "The airlock on deck 3 is broken.")
        await service.lorebook.add(["garden"], "Never mentioned.")
        await service.settings_store.update(max_output_tokens=int(OutputLength.SHORT))
        await service.send_message(conversation.id, "Let's check the AIRLOCK")
        return await service.get_conversation(conversation.id)

    conversation = asyncio.run(scenario())
    first, second = provider.chat_calls
    assert "You are Rin." not in first.system_instruction
    assert second.system_instruction.startswith("You are Rin.")
    assert "- Relationship: old friend" in second.system_instruction
    assert "We are on a space station." in second.system_instruction
    assert "The airlock on deck 3 is broken." in second.system_instruction
    assert "Never mentioned." not in second.system_instruction
    assert second.max_output_tokens == 512
    # Earlier messages are not rewritten by a persona change
    assert conversation.messages[1].content == "reply #1"


def test_edit_message_and_set_model(make_service) -> None:
    service = make_service()

    async def scenario():
        conversation = await service.create_conversation()
        await service.send_message(conversation.id, "hello")
        await service.edit_message(conversation.id, 0, "hello, edited")
        await service.set_model(conversation.id, "gemini-flash")
        with pytest.raises(InvalidRequestError):
            await service.set_model(conversation.id, "no-such-model")
        return await service.get_conversation(conversation.id)

    conversation = asyncio.run(scenario())
    assert conversation.messages[0].content == "hello, edited"
    assert conversation.model_selector == "gemini-flash"


def test_set_active_credential_pins(make_service) -> None:
    service = make_service()

    async def scenario():
        credential = await service.credentials.add("secret-x", "x")
        settings = await service.set_active_credential(credential.id)
        return credential, settings

    credential, settings = asyncio.run(scenario())
    assert settings.active_credential_id == credential.id
