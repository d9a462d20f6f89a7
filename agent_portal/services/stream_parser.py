"""
Lectura incremental de la respuesta de un agente.

El webhook responde con objetos JSON separados por saltos de línea. Cada
línea se interpreta por separado y solo se reconocen dos formas:

    {"conversationId": "<id>"}              id asignado por el servidor
    {"type": "item", "content": "<texto>"}  fragmento de la respuesta

Cualquier otra forma se ignora. Una línea que no es JSON se registra y se
descarta sin interrumpir el stream.

Estados de un turno::

    idle -> awaiting_first_byte -> streaming -> completed
                    \\                  \\
                     +------------------+--> failed
"""
import asyncio
import codecs
import json
import logging
from enum import Enum
from typing import AsyncIterable, Callable, List, NamedTuple, Optional, Union

from agent_portal.models.conversation import ChatMessage

logger = logging.getLogger(__name__)


class TurnState(str, Enum):
    IDLE = "idle"
    AWAITING_FIRST_BYTE = "awaiting_first_byte"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


class InvalidTransition(RuntimeError):
    pass


class ConversationIdEvent(NamedTuple):
    conversation_id: str


class ItemEvent(NamedTuple):
    content: str


StreamEvent = Union[ConversationIdEvent, ItemEvent]


def parse_events(line: str) -> List[StreamEvent]:
    """Eventos reconocidos en una línea. Lanza ValueError si no es JSON."""
    data = json.loads(line)
    if not isinstance(data, dict):
        return []

    events: List[StreamEvent] = []
    conversation_id = data.get("conversationId")
    if conversation_id:
        events.append(ConversationIdEvent(str(conversation_id)))
    content = data.get("content")
    if data.get("type") == "item" and isinstance(content, str) and content:
        events.append(ItemEvent(content))
    return events


class LineBuffer:
    """Decodifica bytes UTF-8 por partes y devuelve las líneas completas."""

    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""

    def feed(self, chunk: bytes) -> List[str]:
        self._pending += self._decoder.decode(chunk)
        *lines, self._pending = self._pending.split("\n")
        return lines

    def flush(self) -> List[str]:
        tail = self._pending + self._decoder.decode(b"", final=True)
        self._pending = ""
        return [tail] if tail else []


class StreamingTurn:
    """Un turno de respuesta del agente que va rellenando ``message``."""

    def __init__(
        self,
        message: ChatMessage,
        agent_path: str,
        conversation_id: Optional[str] = None,
        on_update: Optional[Callable[[ChatMessage], None]] = None,
        on_navigate: Optional[Callable[[str], None]] = None,
        on_error: Optional[Callable[[str], None]] = None,
    ):
        self.message = message
        self.agent_path = agent_path
        self.conversation_id = conversation_id
        self.on_update = on_update
        self.on_navigate = on_navigate
        self.on_error = on_error
        self.state = TurnState.IDLE
        self.navigated = False
        self.skipped_lines = 0
        self.error: Optional[str] = None
        self._lines = LineBuffer()

    def _require(self, *states: TurnState):
        if self.state not in states:
            raise InvalidTransition(f"Turn is {self.state.value}, expected one of {[s.value for s in states]}")

    def begin(self):
        self._require(TurnState.IDLE)
        self.message.in_progress = True
        self.state = TurnState.AWAITING_FIRST_BYTE

    def feed(self, chunk: bytes):
        self._require(TurnState.AWAITING_FIRST_BYTE, TurnState.STREAMING)
        if not chunk:
            return
        self.state = TurnState.STREAMING
        for line in self._lines.feed(chunk):
            self._handle_line(line)

    def finish(self):
        self._require(TurnState.AWAITING_FIRST_BYTE, TurnState.STREAMING)
        for line in self._lines.flush():
            self._handle_line(line)
        self.message.close()
        self.state = TurnState.COMPLETED

    def fail(self, error: Union[str, BaseException]):
        if self.state is TurnState.FAILED:
            return
        self._require(TurnState.AWAITING_FIRST_BYTE, TurnState.STREAMING)
        self.error = str(error) or type(error).__name__
        self.message.close()
        self.state = TurnState.FAILED
        logger.error(f"Streaming turn failed for message {self.message.id}: {self.error}")
        if self.on_error:
            self.on_error(self.error)

    async def consume(self, chunks: AsyncIterable[bytes]) -> ChatMessage:
        if self.state is TurnState.IDLE:
            self.begin()
        try:
            async for chunk in chunks:
                self.feed(chunk)
        except (Exception, asyncio.CancelledError) as e:
            self.fail(e)
            raise
        self.finish()
        return self.message

    def canonical_url(self, conversation_id: str) -> str:
        return f"/chat/{self.agent_path.lstrip('/')}/{conversation_id}"

    def _handle_line(self, line: str):
        if not line.strip():
            return
        try:
            events = parse_events(line)
        except ValueError as e:
            self.skipped_lines += 1
            logger.warning(f"Could not parse streamed line as JSON: {line!r} ({e})")
            return

        for event in events:
            if isinstance(event, ConversationIdEvent):
                self._navigate(event.conversation_id)
            elif isinstance(event, ItemEvent):
                self.message.append(event.content)
                if self.on_update:
                    self.on_update(self.message)

    def _navigate(self, conversation_id: str):
        if self.conversation_id is not None or self.navigated:
            return
        self.navigated = True
        self.conversation_id = conversation_id
        self.message.conversation_id = conversation_id
        if self.on_navigate:
            self.on_navigate(self.canonical_url(conversation_id))
