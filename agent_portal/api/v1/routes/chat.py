# agent_portal/api/v1/routes/chat.py
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from agent_portal.core.access import user_can_access
from agent_portal.core.auth import get_optional_user
from agent_portal.db.database import get_agents_collection, get_conversations_collection
from agent_portal.models.agents import Agent
from agent_portal.models.conversation import ChatMessage, ConversationSummary
from agent_portal.services.agent_service import get_agent_by_path
from agent_portal.services.conversation_store import ConversationStore
from agent_portal.services.session_service import new_anonymous_conversation_id, resolve_session_id

router = APIRouter()


class ChatBootstrap(BaseModel):
    agent: Agent
    conversation_id: Optional[str] = None
    session_id: str
    messages: List[ChatMessage] = []
    conversations: List[ConversationSummary] = []
    has_more: bool = False
    user_role: Optional[str] = None


@router.get("/{agent_path}", response_model=ChatBootstrap)
async def open_chat(
    agent_path: str,
    conversation_id: Optional[str] = Query(None),
    current_user: Optional[dict] = Depends(get_optional_user),
    agents=Depends(get_agents_collection),
    conversations=Depends(get_conversations_collection),
):
    """
    Datos iniciales para abrir el chat con un agente.
    """
    agent = await get_agent_by_path(agents, agent_path)
    if agent is None:
        raise HTTPException(status_code=404, detail="Agent not found")

    if not user_can_access(agent.access_level, current_user):
        return JSONResponse(
            {"error": "Access Denied", "detail": "You do not have permission to access this agent."},
            status_code=403,
        )

    if current_user is None:
        return ChatBootstrap(
            agent=agent,
            conversation_id=conversation_id or new_anonymous_conversation_id(),
            session_id=resolve_session_id(None, None),
        )

    store = ConversationStore(conversations)
    page = await store.list_conversations(current_user["email"], agent.id)

    persisted_session = None
    messages: List[ChatMessage] = []
    if conversation_id:
        history = await store.get_messages(conversation_id, current_user["email"], agent.id)
        messages = history.messages
        persisted_session = history.session_id

    return ChatBootstrap(
        agent=agent,
        conversation_id=conversation_id,
        session_id=resolve_session_id(persisted_session, str(current_user["_id"])),
        messages=messages,
        conversations=page.items,
        has_more=page.has_more,
        user_role=current_user.get("role"),
    )
