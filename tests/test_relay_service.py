"""End-to-end relay flow with fake transport/assistant and a SQLite store."""

from __future__ import annotations

import anyio
import pytest

from relay_bot.config.constants import NOTICES
from relay_bot.services.assistant_service import OtherReply, TextReply
from relay_bot.services.conversation_service import ConversationService
from relay_bot.services.relay_service import IncomingMessage, RelayOutcome, RelayService
from relay_bot.services.run_poller import RunPoller
from relay_bot.utils.debounce import BurstAggregator

from fakes import FakeAssistant, FakeTransport

pytestmark = pytest.mark.anyio


def _relay(
    transport: FakeTransport,
    assistant: FakeAssistant,
    session_pool,
    *,
    quiet_period=0.1,
    poll_interval=0,
    max_attempts=None,
) -> RelayService:
    return RelayService(
        transport=transport,
        aggregator=BurstAggregator(quiet_period=quiet_period),
        assistant=assistant,
        poller=RunPoller(assistant, poll_interval=poll_interval, failure_backoff=0, max_attempts=max_attempts),
        conversations=ConversationService(session_pool),
    )


async def test_burst_produces_one_run(transport, session_pool) -> None:
    assistant = FakeAssistant(["queued", "completed"], reply=TextReply("merged answer"))
    relay = _relay(transport, assistant, session_pool)
    outcomes: list[RelayOutcome] = []

    async def send(text: str) -> None:
        outcomes.append(await relay.handle_incoming(IncomingMessage("A", text)))

    async with anyio.create_task_group() as tg:
        for text in ["hi", "there", "bob"]:
            tg.start_soon(send, text)
            await anyio.sleep(0.02)

    assert sorted(outcomes) == sorted([RelayOutcome.SUPERSEDED] * 2 + [RelayOutcome.COMPLETED])
    assert len(assistant.runs) == 1
    assert assistant.threads == {"thread-1": ["hi\nthere\nbob"]}
    assert transport.sent == [("A", "merged answer")]
    assert transport.typing == ["A"]

    state = await relay.conversations.get_conversation_state("A")
    assert state.thread_id == "thread-1"
    assert state.messages == [
        {"role": "user", "message": "hi\nthere\nbob"},
        {"role": "assistant", "message": "merged answer"},
    ]


async def test_thread_is_reused(transport, session_pool) -> None:
    assistant = FakeAssistant()
    relay = _relay(transport, assistant, session_pool)

    await relay.handle_incoming(IncomingMessage("A", "first"))
    await relay.handle_incoming(IncomingMessage("A", "second"))

    assert assistant.threads == {"thread-1": ["first", "second"]}
    assert [thread for thread, _ in assistant.runs] == ["thread-1", "thread-1"]


async def test_lookup_miss_creates_new_thread(transport, session_pool) -> None:
    assistant = FakeAssistant()
    relay = _relay(transport, assistant, session_pool)
    await relay.conversations.save_thread_id("A", "thread-expired")

    outcome = await relay.handle_incoming(IncomingMessage("A", "hello again"))

    assert outcome == RelayOutcome.COMPLETED
    state = await relay.conversations.get_conversation_state("A")
    assert state.thread_id != "thread-expired"
    assert assistant.threads[state.thread_id] == ["hello again"]


@pytest.mark.parametrize(
    ("has_media", "is_ephemeral"),
    [(True, False), (False, True)],
)
async def test_unsupported_content_gets_apology(transport, session_pool, has_media, is_ephemeral) -> None:
    assistant = FakeAssistant()
    relay = _relay(transport, assistant, session_pool)

    outcome = await relay.handle_incoming(
        IncomingMessage("A", "caption", has_media=has_media, is_ephemeral=is_ephemeral)
    )

    assert outcome == RelayOutcome.UNSUPPORTED
    assert transport.sent == [("A", NOTICES["unsupported_content"])]
    assert assistant.runs == []
    assert not relay.aggregator.has_pending("A")


async def test_failed_run_notifies_sender(transport, session_pool) -> None:
    assistant = FakeAssistant(["in_progress", "failed"])
    relay = _relay(transport, assistant, session_pool)

    outcome = await relay.handle_incoming(IncomingMessage("A", "hi"))

    assert outcome == RelayOutcome.FAILED
    assert transport.sent == [("A", NOTICES["run_failed"])]
    state = await relay.conversations.get_conversation_state("A")
    assert state.messages == [{"role": "user", "message": "hi"}]


async def test_stuck_run_times_out(transport, session_pool) -> None:
    assistant = FakeAssistant(["in_progress"])
    relay = _relay(transport, assistant, session_pool, max_attempts=3)

    outcome = await relay.handle_incoming(IncomingMessage("A", "hi"))

    assert outcome == RelayOutcome.TIMED_OUT
    assert assistant.status_checks == 3
    assert transport.sent == [("A", NOTICES["run_timed_out"])]


async def test_non_text_reply_falls_back(transport, session_pool) -> None:
    assistant = FakeAssistant(reply=OtherReply("image_file"))
    relay = _relay(transport, assistant, session_pool)

    await relay.handle_incoming(IncomingMessage("A", "draw me a cat"))

    assert transport.sent == [("A", NOTICES["non_text_reply"])]


async def test_follow_up_burst_waits_for_active_run(transport, session_pool) -> None:
    # The first run stays pending for ~0.2s; the second burst is released while it is active
    assistant = FakeAssistant(["in_progress"] * 10 + ["completed"])
    relay = _relay(transport, assistant, session_pool, quiet_period=0.05, poll_interval=0.02)
    outcomes: list[RelayOutcome] = []

    async def send(text: str) -> None:
        outcomes.append(await relay.handle_incoming(IncomingMessage("A", text)))

    async with anyio.create_task_group() as tg:
        tg.start_soon(send, "first")
        await anyio.sleep(0.1)
        tg.start_soon(send, "second")

    assert outcomes == [RelayOutcome.COMPLETED, RelayOutcome.COMPLETED]
    assert assistant.threads == {"thread-1": ["first", "second"]}
    assert len(assistant.runs) == 2
    state = await relay.conversations.get_conversation_state("A")
    assert state.messages == [
        {"role": "user", "message": "first"},
        {"role": "assistant", "message": "assistant says hi"},
        {"role": "user", "message": "second"},
        {"role": "assistant", "message": "assistant says hi"},
    ]


async def test_history_is_not_written_when_thread_rejects_message(transport, session_pool) -> None:
    class RejectingAssistant(FakeAssistant):
        async def append_message(self, thread_id: str, message: str) -> None:
            raise RuntimeError("400: thread is busy")

    assistant = RejectingAssistant()
    assistant.threads["thread-1"] = []
    relay = _relay(transport, assistant, session_pool)
    await relay.conversations.save_thread_id("A", "thread-1")

    with pytest.raises(RuntimeError):
        await relay.handle_incoming(IncomingMessage("A", "hello"))

    state = await relay.conversations.get_conversation_state("A")
    assert state.messages == []
    assert assistant.runs == []
