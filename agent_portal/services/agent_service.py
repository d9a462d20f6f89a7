# agent_portal/services/agent_service.py
from typing import Any, Dict, List, Optional

from bson import ObjectId
from fastapi import HTTPException, status

from agent_portal.core.access import caller_identity, is_listed
from agent_portal.models.agents import Agent, AgentCreate, AgentUpdate, normalize_path


def agent_serializer(agent_doc: Dict[str, Any]) -> Agent:
    agent_doc = dict(agent_doc)
    agent_doc['id'] = str(agent_doc.pop('_id'))
    return Agent(**agent_doc)


def _object_id(agent_id: str) -> Optional[ObjectId]:
    if not agent_id or not ObjectId.is_valid(agent_id):
        return None
    return ObjectId(agent_id)


async def list_agents(agents) -> List[Agent]:
    return [agent_serializer(doc) async for doc in agents.find({})]


async def list_available_agents(agents, user: Optional[dict]) -> List[Agent]:
    """Agentes que el usuario puede ver en el catálogo."""
    _, role = caller_identity(user)
    return [agent for agent in await list_agents(agents) if is_listed(agent.access_level, role)]


async def get_agent_by_id(agents, agent_id: str) -> Optional[Agent]:
    oid = _object_id(agent_id)
    if oid is None:
        return None
    agent_doc = await agents.find_one({'_id': oid})
    return agent_serializer(agent_doc) if agent_doc else None


async def get_agent_by_path(agents, path: str) -> Optional[Agent]:
    agent_doc = await agents.find_one({'path': normalize_path(path)})
    return agent_serializer(agent_doc) if agent_doc else None


async def _ensure_path_available(agents, path: str, exclude: Optional[ObjectId] = None):
    existing = await agents.find_one({'path': path})
    if existing and existing['_id'] != exclude:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"An agent already uses the path {path}"
        )


async def create_agent(agents, agent_data: AgentCreate) -> Agent:
    await _ensure_path_available(agents, agent_data.path)
    agent_doc = agent_data.model_dump(mode="json")
    result = await agents.insert_one(agent_doc)
    created = await agents.find_one({'_id': result.inserted_id})
    return agent_serializer(created)


async def update_agent(agents, agent_id: str, agent_data: AgentUpdate) -> Optional[Agent]:
    oid = _object_id(agent_id)
    if oid is None:
        return None

    update_fields = agent_data.model_dump(mode="json", exclude_none=True)
    if not update_fields:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No valid fields to update"
        )
    if 'path' in update_fields:
        await _ensure_path_available(agents, update_fields['path'], exclude=oid)

    result = await agents.update_one({'_id': oid}, {'$set': update_fields})
    if result.matched_count == 0:
        return None
    return agent_serializer(await agents.find_one({'_id': oid}))


async def delete_agent(agents, agent_id: str) -> bool:
    oid = _object_id(agent_id)
    if oid is None:
        return False
    result = await agents.delete_one({'_id': oid})
    return result.deleted_count > 0
