"""Historial de conversaciones en MongoDB, siempre filtrado por el dueño.

Los documentos los escribe el webhook del agente; aquí solo se listan,
consultan, renombran y eliminan. Cada consulta incluye el email del usuario
como predicado, nunca como comprobación posterior.
"""
import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo.errors import PyMongoError

from agent_portal.models.conversation import (
    ChatMessage,
    ConversationMessages,
    ConversationPage,
    ConversationSummary,
    Sender,
    StoreResult,
)

logger = logging.getLogger(__name__)

PAGE_SIZE = 10
TITLE_PREVIEW_LENGTH = 50
DEFAULT_TITLE = "New Chat"

NOT_FOUND_ERROR = "Conversation not found or user does not have permission"
DATABASE_ERROR = "Database error"


def derive_title(conversation: Dict[str, Any]) -> str:
    """Título guardado, o el primer mensaje del usuario recortado a 50 caracteres."""
    if conversation.get('conversationTitle'):
        return conversation['conversationTitle']
    first_human = next(
        (msg for msg in conversation.get('messages') or [] if msg.get('type') == 'human'),
        None,
    )
    content = ((first_human or {}).get('data') or {}).get('content')
    if not content:
        return DEFAULT_TITLE
    if len(content) > TITLE_PREVIEW_LENGTH:
        return content[:TITLE_PREVIEW_LENGTH] + '...'
    return content


def conversation_serializer(conversation: Dict[str, Any]) -> ConversationSummary:
    return ConversationSummary(
        id=str(conversation['_id']),
        session_id=conversation.get('sessionId'),
        email=conversation['email'],
        agent_id=conversation.get('agentId'),
        title=derive_title(conversation),
        created_at=conversation.get('createdAt'),
        updated_at=conversation.get('updatedAt'),
    )


def message_serializer(
    conversation_id: str, index: int, message: Dict[str, Any], agent_id: str, fallback_time: datetime
) -> ChatMessage:
    return ChatMessage(
        id=f"{conversation_id}-{index}",
        content=(message.get('data') or {}).get('content') or '',
        sender=Sender.USER if message.get('type') == 'human' else Sender.AGENT,
        timestamp=message.get('timestamp') or fallback_time,
        agent_id=agent_id,
        conversation_id=conversation_id,
    )


def _object_id(conversation_id: Optional[str]) -> Optional[ObjectId]:
    if not conversation_id or not ObjectId.is_valid(conversation_id):
        return None
    return ObjectId(conversation_id)


class ConversationStore:
    def __init__(self, collection):
        self.collection = collection

    async def _find_owned(self, conversation_id: str, email: str) -> Optional[Dict[str, Any]]:
        oid = _object_id(conversation_id)
        if oid is None:
            return None
        return await self.collection.find_one({'_id': oid, 'email': email})

    async def list_conversations(
        self,
        email: str,
        agent_id: str,
        search_term: Optional[str] = None,
        page: int = 1,
        active_conversation_id: Optional[str] = None,
    ) -> ConversationPage:
        page = max(page, 1)
        query: Dict[str, Any] = {'email': email, 'agentId': agent_id}
        if search_term:
            query['conversationTitle'] = {'$regex': re.escape(search_term), '$options': 'i'}

        try:
            cursor = (
                self.collection.find(query)
                .sort([('updatedAt', -1), ('_id', -1)])
                .skip((page - 1) * PAGE_SIZE)
                .limit(PAGE_SIZE)
            )
            documents = await cursor.to_list(length=PAGE_SIZE)
        except PyMongoError as e:
            logger.error(f"Failed to fetch conversation history: {e}")
            return ConversationPage(page=page)

        items = [conversation_serializer(doc) for doc in documents]
        has_more = len(documents) == PAGE_SIZE

        if page == 1 and active_conversation_id and not any(c.id == active_conversation_id for c in items):
            active = await self.get_conversation(active_conversation_id, email)
            if active is not None:
                items = [active] + items

        return ConversationPage(items=items, page=page, has_more=has_more)

    async def get_conversation(self, conversation_id: str, email: str) -> Optional[ConversationSummary]:
        try:
            conversation = await self._find_owned(conversation_id, email)
        except PyMongoError as e:
            logger.error(f"Failed to fetch conversation {conversation_id}: {e}")
            return None
        return conversation_serializer(conversation) if conversation else None

    async def get_messages(self, conversation_id: str, email: str, agent_id: str = '') -> ConversationMessages:
        try:
            conversation = await self._find_owned(conversation_id, email)
        except PyMongoError as e:
            logger.error(f"Failed to fetch messages for conversation {conversation_id}: {e}")
            return ConversationMessages()

        if not conversation:
            logger.warning(f"Conversation {conversation_id} not found for the current user")
            return ConversationMessages()

        fallback_time = conversation.get('updatedAt') or datetime.utcnow()
        messages: List[ChatMessage] = [
            message_serializer(conversation_id, index, message, agent_id, fallback_time)
            for index, message in enumerate(conversation.get('messages') or [])
        ]
        return ConversationMessages(messages=messages, session_id=conversation.get('sessionId'))

    async def rename(self, conversation_id: str, email: str, new_title: str) -> StoreResult:
        if not conversation_id or not new_title or not new_title.strip():
            return StoreResult.failure(
                'Conversation ID and a non-empty title are required', 'validation'
            )
        oid = _object_id(conversation_id)
        if oid is None:
            return StoreResult.failure(NOT_FOUND_ERROR, 'not_found')

        try:
            result = await self.collection.update_one(
                {'_id': oid, 'email': email},
                {'$set': {'conversationTitle': new_title.strip(), 'updatedAt': datetime.utcnow()}},
            )
        except PyMongoError as e:
            logger.error(f"Failed to update conversation title: {e}")
            return StoreResult.failure(DATABASE_ERROR, 'database')

        if result.matched_count == 0:
            return StoreResult.failure(NOT_FOUND_ERROR, 'not_found')
        return StoreResult.ok()

    async def delete(self, conversation_id: str, email: str) -> StoreResult:
        if not conversation_id:
            return StoreResult.failure('Conversation ID is required', 'validation')
        oid = _object_id(conversation_id)
        if oid is None:
            return StoreResult.failure(NOT_FOUND_ERROR, 'not_found')

        try:
            result = await self.collection.delete_one({'_id': oid, 'email': email})
        except PyMongoError as e:
            logger.error(f"Failed to delete conversation: {e}")
            return StoreResult.failure(DATABASE_ERROR, 'database')

        if result.deleted_count == 0:
            return StoreResult.failure(NOT_FOUND_ERROR, 'not_found')
        return StoreResult.ok()
