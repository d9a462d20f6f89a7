from typing import List, Optional

from fastapi import APIRouter, Depends

from agent_portal.core.auth import get_optional_user
from agent_portal.db.database import get_agents_collection
from agent_portal.models.agents import Agent
from agent_portal.services.agent_service import list_available_agents

router = APIRouter()


@router.get("/", response_model=List[Agent])
async def list_agents_endpoint(
    current_user: Optional[dict] = Depends(get_optional_user),
    agents=Depends(get_agents_collection),
):
    """
    Catálogo de agentes disponibles para el usuario actual.
    """
    return await list_available_agents(agents, current_user)
