from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse

from agent_portal.core.auth import get_current_user
from agent_portal.db.database import get_conversations_collection
from agent_portal.models.conversation import (
    ConversationMessages,
    ConversationPage,
    ConversationSummary,
    RenameConversation,
    StoreResult,
)
from agent_portal.services.conversation_store import ConversationStore

router = APIRouter()

_STATUS_BY_REASON = {
    "validation": 400,
    "not_found": 404,
    "database": 500,
}


def get_conversation_store(collection=Depends(get_conversations_collection)) -> ConversationStore:
    return ConversationStore(collection)


def store_result_response(result: StoreResult) -> JSONResponse:
    status_code = 200 if result.success else _STATUS_BY_REASON.get(result.reason, 400)
    return JSONResponse(result.model_dump(exclude_none=True), status_code=status_code)


@router.get("/", response_model=ConversationPage)
async def list_conversations(
    agent_id: str = Query(...),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    active_conversation_id: Optional[str] = Query(None),
    current_user: dict = Depends(get_current_user),
    store: ConversationStore = Depends(get_conversation_store),
):
    """
    Conversaciones del usuario con un agente, paginadas y con búsqueda por título.
    """
    return await store.list_conversations(
        current_user["email"],
        agent_id,
        search_term=search,
        page=page,
        active_conversation_id=active_conversation_id,
    )


@router.get("/{conversation_id}", response_model=ConversationSummary)
async def get_conversation(
    conversation_id: str,
    current_user: dict = Depends(get_current_user),
    store: ConversationStore = Depends(get_conversation_store),
):
    conversation = await store.get_conversation(conversation_id, current_user["email"])
    if not conversation:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return conversation


@router.get("/{conversation_id}/messages", response_model=ConversationMessages)
async def get_conversation_messages(
    conversation_id: str,
    agent_id: str = Query(""),
    current_user: dict = Depends(get_current_user),
    store: ConversationStore = Depends(get_conversation_store),
):
    return await store.get_messages(conversation_id, current_user["email"], agent_id)


@router.patch("/{conversation_id}")
async def rename_conversation(
    conversation_id: str,
    payload: RenameConversation,
    current_user: dict = Depends(get_current_user),
    store: ConversationStore = Depends(get_conversation_store),
):
    result = await store.rename(conversation_id, current_user["email"], payload.title)
    return store_result_response(result)


@router.delete("/{conversation_id}")
async def delete_conversation(
    conversation_id: str,
    current_user: dict = Depends(get_current_user),
    store: ConversationStore = Depends(get_conversation_store),
):
    result = await store.delete(conversation_id, current_user["email"])
    return store_result_response(result)
