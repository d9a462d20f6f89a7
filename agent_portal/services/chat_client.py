"""Cliente de chat: envía un mensaje a través del proxy y sigue la respuesta en streaming."""
import asyncio
import logging
from typing import Callable, List, Optional, Sequence, Tuple

import httpx

from agent_portal.models.agents import Agent
from agent_portal.models.conversation import Attachment, ChatMessage, Sender
from agent_portal.services.stream_parser import StreamingTurn, TurnState

logger = logging.getLogger(__name__)

# (nombre, contenido, tipo MIME)
Upload = Tuple[str, bytes, str]

AUDIO_FILENAME = "audio.webm"
AUDIO_CONTENT_TYPE = "audio/webm"


class TurnInProgressError(RuntimeError):
    """Ya hay una respuesta en curso en esta conversación."""


class TurnError(Exception):
    pass


class ChatThread:
    """Mensajes de una conversación tal como los ve el cliente."""

    def __init__(
        self,
        agent: Agent,
        session_id: str,
        conversation_id: Optional[str] = None,
        messages: Optional[List[ChatMessage]] = None,
        user_email: Optional[str] = None,
    ):
        self.agent = agent
        self.session_id = session_id
        self.conversation_id = conversation_id
        self.messages: List[ChatMessage] = list(messages or [])
        self.user_email = user_email

    @property
    def responding(self) -> bool:
        return any(message.in_progress for message in self.messages)

    def _next_id(self) -> str:
        return f"{self.conversation_id or 'draft'}-{len(self.messages)}"

    def add_user_message(self, content: str, attachments: Sequence[Attachment] = (), audio_url: Optional[str] = None):
        message = ChatMessage(
            id=self._next_id(),
            content=content,
            sender=Sender.USER,
            agent_id=self.agent.id,
            conversation_id=self.conversation_id,
            attachments=list(attachments),
            audio_url=audio_url,
        )
        self.messages.append(message)
        return message

    def open_agent_message(self) -> ChatMessage:
        if self.responding:
            raise TurnInProgressError(f"A response from {self.agent.name} is already streaming")
        message = ChatMessage(
            id=self._next_id(),
            sender=Sender.AGENT,
            agent_id=self.agent.id,
            conversation_id=self.conversation_id,
            in_progress=True,
        )
        self.messages.append(message)
        return message


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict) and data.get("error"):
        return data["error"]
    return f"Error {response.status_code}: {response.reason_phrase}"


class ChatClient:
    def __init__(
        self,
        http: httpx.AsyncClient,
        proxy_path: str = "/api/webhook",
        access_token: Optional[str] = None,
        on_update: Optional[Callable[[ChatMessage], None]] = None,
        on_navigate: Optional[Callable[[str], None]] = None,
        on_error: Optional[Callable[[str], None]] = None,
    ):
        self.http = http
        self.proxy_path = proxy_path
        self.access_token = access_token
        self.on_update = on_update
        self.on_navigate = on_navigate
        self.on_error = on_error

    def _headers(self) -> dict:
        if self.access_token:
            return {"Authorization": f"Bearer {self.access_token}"}
        return {}

    def _notify(self, agent: Agent, error: str):
        if self.on_error:
            self.on_error(f"Could not reach {agent.name}. {error}")

    def _parts(self, thread: ChatThread, content: str, files: Sequence[Upload], audio: Optional[bytes], video_analysis: bool):
        parts = [
            ("webhookUrl", (None, thread.agent.webhook_url)),
            ("message", (None, content)),
            ("agentId", (None, thread.agent.id)),
            ("sessionId", (None, thread.session_id)),
        ]
        if thread.user_email:
            parts.append(("userEmail", (None, thread.user_email)))
        if video_analysis:
            parts.append(("videoAnalysis", (None, "true")))
        for index, (name, data, content_type) in enumerate(files):
            parts.append((f"file_{index}", (name, data, content_type)))
        if audio is not None:
            parts.append(("audio", (AUDIO_FILENAME, audio, AUDIO_CONTENT_TYPE)))
        return parts

    async def send(
        self,
        thread: ChatThread,
        content: str,
        files: Sequence[Upload] = (),
        audio: Optional[bytes] = None,
        video_analysis: bool = False,
    ) -> Optional[ChatMessage]:
        """
        Envía un turno y devuelve el mensaje del agente.

        El mensaje del agente se crea vacío antes de la llamada y se va
        completando con cada evento. Si algo falla conserva el contenido
        parcial y se notifica el error con ``on_error``.
        """
        if thread.responding:
            raise TurnInProgressError(f"A response from {thread.agent.name} is already streaming")
        if not content.strip() and not files and audio is None:
            return None

        display = content or ("[Audio message]" if audio is not None else "[Attachments]")
        thread.add_user_message(
            display,
            attachments=[Attachment(name=name, type=content_type, size=len(data)) for name, data, content_type in files],
            audio_url=AUDIO_FILENAME if audio is not None else None,
        )

        placeholder = thread.open_agent_message()
        turn = StreamingTurn(
            placeholder,
            agent_path=thread.agent.path,
            conversation_id=thread.conversation_id,
            on_update=self.on_update,
            on_navigate=self.on_navigate,
        )
        turn.begin()

        try:
            async with self.http.stream(
                "POST",
                self.proxy_path,
                files=self._parts(thread, content, files, audio, video_analysis),
                headers=self._headers(),
            ) as response:
                if not response.is_success:
                    await response.aread()
                    raise TurnError(_error_message(response))
                if response.status_code in (204, 205):
                    raise TurnError("Response body is empty")
                await turn.consume(response.aiter_bytes())
        except (httpx.HTTPError, TurnError) as e:
            turn.fail(e)
            self._notify(thread.agent, turn.error)
            return placeholder
        except asyncio.CancelledError:
            turn.fail("Response cancelled")
            raise

        if turn.navigated:
            thread.conversation_id = turn.conversation_id
        logger.info(f"Response received from {thread.agent.name} ({len(placeholder.content)} chars)")
        return placeholder
