# agent_portal/models/agents.py

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class AccessLevel(str, Enum):
    PUBLIC = "public"
    NON_CLIENT = "non_client"
    PARTNER = "partner"
    ADMIN = "admin"


def normalize_path(path: str) -> str:
    """Las rutas de agente siempre empiezan por '/'."""
    path = (path or "").strip()
    return path if path.startswith("/") else f"/{path}"


class AgentBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str = ""
    webhook_url: str = Field(..., min_length=1)
    path: str = "/"
    color: str = "agent-support"
    icon: str = "🤖"
    access_level: AccessLevel = AccessLevel.PUBLIC

    @field_validator("path")
    @classmethod
    def _normalize_path(cls, value: str) -> str:
        return normalize_path(value)


class AgentCreate(AgentBase):
    pass


class AgentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    webhook_url: Optional[str] = Field(None, min_length=1)
    path: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    access_level: Optional[AccessLevel] = None

    @field_validator("path")
    @classmethod
    def _normalize_path(cls, value: Optional[str]) -> Optional[str]:
        return normalize_path(value) if value is not None else None


class Agent(AgentBase):
    id: str

    @property
    def slug(self) -> str:
        return self.path.lstrip("/")

    def webhook_targets(self) -> List[str]:
        """URLs de webhook aceptadas para este agente: la base y la base con la ruta."""
        base = self.webhook_url
        targets = [base]
        if self.path and self.path != "/":
            targets.append(f"{base.rstrip('/')}{self.path}")
        return targets
