import asyncio

import httpx
import pytest

from agent_portal.models.conversation import ChatMessage, MessageClosedError, Sender
from agent_portal.services.stream_parser import (
    ConversationIdEvent,
    InvalidTransition,
    ItemEvent,
    LineBuffer,
    StreamingTurn,
    TurnState,
    parse_events,
)


def _message():
    return ChatMessage(id="draft-1", sender=Sender.AGENT, agent_id="agent-1")


def _turn(conversation_id=None):
    updates, urls, errors = [], [], []
    turn = StreamingTurn(
        _message(),
        agent_path="/support",
        conversation_id=conversation_id,
        on_update=lambda message: updates.append(message.content),
        on_navigate=urls.append,
        on_error=errors.append,
    )
    return turn, updates, urls, errors


async def _chunks(*chunks, error=None):
    for chunk in chunks:
        yield chunk
    if error is not None:
        raise error


def test_parse_events_recognizes_both_shapes():
    assert parse_events('{"conversationId": "c1"}') == [ConversationIdEvent("c1")]
    assert parse_events('{"type": "item", "content": "hi"}') == [ItemEvent("hi")]


@pytest.mark.parametrize(
    "line",
    [
        '{"type": "other", "content": "x"}',
        '{"type": "item", "content": ""}',
        '{"type": "item", "content": 5}',
        '{"type": "item"}',
        '[1, 2]',
        '"text"',
    ],
)
def test_parse_events_ignores_unknown_shapes(line):
    assert parse_events(line) == []


def test_parse_events_rejects_invalid_json():
    with pytest.raises(ValueError):
        parse_events("not json")


def test_line_buffer_keeps_partial_lines_and_split_characters():
    buffer = LineBuffer()
    data = '{"content": "café"}\n{"x"'.encode("utf-8")
    split_at = data.index("é".encode("utf-8")) + 1
    assert buffer.feed(data[:split_at]) == []
    assert buffer.feed(data[split_at:]) == ['{"content": "café"}']
    assert buffer.flush() == ['{"x"']
    assert buffer.flush() == []


async def test_items_are_concatenated_in_order():
    turn, updates, _, _ = _turn()
    message = await turn.consume(_chunks(
        b'{"type":"item","content":"A"}\n',
        b'{"type":"item","content":"B"}\n',
    ))
    assert message.content == "AB"
    assert updates == ["A", "AB"]
    assert turn.state is TurnState.COMPLETED
    assert message.in_progress is False


async def test_malformed_line_is_skipped():
    turn, _, _, errors = _turn()
    await turn.consume(_chunks(b'{"type":"item","content":"A"}\nnot json\n{"type":"item","content":"B"}\n'))
    assert turn.message.content == "AB"
    assert turn.skipped_lines == 1
    assert errors == []


async def test_navigation_happens_once_for_new_conversation():
    turn, _, urls, _ = _turn()
    await turn.consume(_chunks(
        b'{"conversationId":"c1"}\n{"type":"item","content":"Hi"}\n',
        b'{"conversationId":"c2"}\n',
    ))
    assert urls == ["/chat/support/c1"]
    assert turn.conversation_id == "c1"
    assert turn.message.conversation_id == "c1"


async def test_no_navigation_when_conversation_is_known():
    turn, _, urls, _ = _turn(conversation_id="existing")
    await turn.consume(_chunks(b'{"conversationId":"c1"}\n{"type":"item","content":"Hi"}\n'))
    assert urls == []
    assert turn.navigated is False
    assert turn.conversation_id == "existing"


async def test_byte_by_byte_chunks_with_multibyte_text():
    body = '{"type":"item","content":"héllo ✓"}\n'.encode("utf-8")
    turn, _, _, _ = _turn()
    await turn.consume(_chunks(*(body[i:i + 1] for i in range(len(body)))))
    assert turn.message.content == "héllo ✓"


async def test_last_line_without_newline_is_flushed():
    turn, _, _, _ = _turn()
    await turn.consume(_chunks(b'{"type":"item","content":"A"}\n{"type":"item",', b'"content":"B"}'))
    assert turn.message.content == "AB"


async def test_stream_error_keeps_partial_content():
    turn, _, _, errors = _turn()
    with pytest.raises(httpx.ReadError):
        await turn.consume(_chunks(b'{"type":"item","content":"A"}\n', error=httpx.ReadError("connection reset")))
    assert turn.state is TurnState.FAILED
    assert turn.message.content == "A"
    assert turn.message.in_progress is False
    assert errors == ["connection reset"]


async def test_cancelled_stream_does_not_stay_in_progress():
    turn, _, _, errors = _turn()
    with pytest.raises(asyncio.CancelledError):
        await turn.consume(_chunks(b'{"type":"item","content":"A"}\n', error=asyncio.CancelledError()))
    assert turn.state is TurnState.FAILED
    assert turn.message.in_progress is False
    assert turn.message.content == "A"
    assert errors == ["CancelledError"]


def test_states_follow_the_turn_lifecycle():
    turn, _, _, _ = _turn()
    assert turn.state is TurnState.IDLE
    with pytest.raises(InvalidTransition):
        turn.feed(b"{}")
    turn.begin()
    assert turn.state is TurnState.AWAITING_FIRST_BYTE
    assert turn.message.in_progress is True
    turn.feed(b"")
    assert turn.state is TurnState.AWAITING_FIRST_BYTE
    turn.feed(b'{"type":"item","content":"x"}\n')
    assert turn.state is TurnState.STREAMING
    turn.finish()
    assert turn.state is TurnState.COMPLETED
    with pytest.raises(InvalidTransition):
        turn.begin()


def test_fail_is_reported_once():
    turn, _, _, errors = _turn()
    turn.begin()
    turn.fail("timeout")
    turn.fail("timeout again")
    assert errors == ["timeout"]
    assert turn.error == "timeout"


def test_closed_message_rejects_appends():
    message = _message()
    message.in_progress = True
    message.append("a")
    message.close()
    with pytest.raises(MessageClosedError):
        message.append("b")
    assert message.content == "a"
