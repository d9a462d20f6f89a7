import secrets
import string
import time
import uuid
from typing import MutableMapping, Optional

_BASE36 = string.digits + string.ascii_lowercase


def _now_millis() -> int:
    return int(time.time() * 1000)


def resolve_session_id(persisted: Optional[str], user_id: Optional[str]) -> str:
    """Session id de la conversación guardada, o uno nuevo a partir del usuario y la hora."""
    if persisted:
        return persisted
    return f"{user_id or 'anon'}-{_now_millis()}"


def session_storage_key(agent_id: str) -> str:
    return f"chat-session-{agent_id}"


def browser_session_id(storage: MutableMapping[str, str], agent_id: str) -> str:
    """Session id estable por par (agente, navegador), guardado en ``storage``."""
    key = session_storage_key(agent_id)
    existing = storage.get(key)
    if existing:
        return existing
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    session_id = f"session_{_now_millis()}_{suffix}"
    storage[key] = session_id
    return session_id


def new_anonymous_conversation_id() -> str:
    return str(uuid.uuid4())
