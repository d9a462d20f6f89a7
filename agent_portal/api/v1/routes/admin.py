from typing import List

from fastapi import APIRouter, Depends, HTTPException
from fastapi import status

from agent_portal.core.auth import require_admin
from agent_portal.db.database import get_agents_collection
from agent_portal.models.agents import Agent, AgentCreate, AgentUpdate
from agent_portal.services.agent_service import create_agent, delete_agent, list_agents, update_agent

router = APIRouter()


@router.get("/agents", response_model=List[Agent])
async def list_agents_route(
    current_admin: dict = Depends(require_admin),
    agents=Depends(get_agents_collection),
):
    return await list_agents(agents)


@router.post("/agents", response_model=Agent, status_code=status.HTTP_201_CREATED)
async def create_agent_route(
    agent: AgentCreate,
    current_admin: dict = Depends(require_admin),
    agents=Depends(get_agents_collection),
):
    return await create_agent(agents, agent)


@router.put("/agents/{agent_id}", response_model=Agent)
async def update_agent_route(
    agent_id: str,
    agent: AgentUpdate,
    current_admin: dict = Depends(require_admin),
    agents=Depends(get_agents_collection),
):
    updated = await update_agent(agents, agent_id, agent)
    if not updated:
        raise HTTPException(status_code=404, detail="Agent not found")
    return updated


@router.delete("/agents/{agent_id}")
async def delete_agent_route(
    agent_id: str,
    current_admin: dict = Depends(require_admin),
    agents=Depends(get_agents_collection),
):
    if not await delete_agent(agents, agent_id):
        raise HTTPException(status_code=404, detail="Agent not found")
    return {"message": "Agent deleted successfully"}
