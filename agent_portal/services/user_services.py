import logging
from datetime import datetime
from typing import Optional

import httpx
from bson import ObjectId
from fastapi import HTTPException, status
from passlib.context import CryptContext

from agent_portal.core.config import settings
from agent_portal.models.user_models import RegisterUser, Role, UserResponse

logger = logging.getLogger(__name__)

# Configuración de hashing de contraseñas
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class DirectoryUnavailable(Exception):
    """El directorio de la organización respondió con un error."""


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def _as_role(value) -> Optional[Role]:
    try:
        return Role(value)
    except (ValueError, TypeError):
        return None


def user_serializer(user: dict) -> UserResponse:
    return UserResponse(
        id=str(user["_id"]),
        email=user["email"],
        role=_as_role(user.get("role")),
        created_at=user.get("created_at"),
    )


async def resolve_directory_role(http: httpx.AsyncClient, email: str) -> Role:
    """
    Consulta el directorio de la organización para decidir el rol inicial.

    Un usuario conocido por el directorio es ``partner``; cualquier otro es
    ``non_client``. Si el directorio no está configurado o no se puede
    contactar, se usa ``non_client``. Un error HTTP del directorio se
    propaga como DirectoryUnavailable.
    """
    if not settings.jira_webhook_url:
        logger.warning("JIRA_WEBHOOK_URL not configured, defaulting role to non_client")
        return Role.NON_CLIENT

    try:
        response = await http.post(settings.jira_webhook_url, json={"email": email})
    except httpx.HTTPError as e:
        logger.error(f"Error calling directory webhook: {e}")
        return Role.NON_CLIENT

    if not response.is_success:
        logger.error(f"Directory webhook returned an error: {response.status_code}")
        raise DirectoryUnavailable(response.status_code)

    try:
        data = response.json()
    except ValueError:
        logger.error("Directory webhook returned a non-JSON body")
        return Role.NON_CLIENT
    return Role.PARTNER if isinstance(data, dict) and data.get("isJiraUser") else Role.NON_CLIENT


async def register_user(users, http: httpx.AsyncClient, user_data: RegisterUser) -> str:
    # Verifica si el usuario ya existe
    existing_user = await users.find_one({"email": user_data.email})
    if existing_user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User already exists"
        )

    # Valida que las contraseñas coincidan
    if user_data.password != user_data.confirm_password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Passwords do not match"
        )

    try:
        role = await resolve_directory_role(http, user_data.email)
    except DirectoryUnavailable:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not verify organization status. Please try again later."
        )

    new_user = {
        "email": user_data.email,
        "hashed_password": get_password_hash(user_data.password),
        "role": role.value,
        "created_at": datetime.utcnow()
    }

    insert_result = await users.insert_one(new_user)
    return str(insert_result.inserted_id)


async def refresh_user_role(users, http: httpx.AsyncClient, user: dict) -> Optional[str]:
    """Actualiza el rol desde el directorio al iniciar sesión; los administradores no se tocan."""
    if user.get("role") == Role.ADMIN:
        return user.get("role")

    try:
        role = await resolve_directory_role(http, user["email"])
    except DirectoryUnavailable:
        return user.get("role")

    if role != user.get("role"):
        await users.update_one({"_id": user["_id"]}, {"$set": {"role": role.value}})
        user["role"] = role.value
    return user["role"]


async def get_user_by_email(users, email: str) -> Optional[dict]:
    return await users.find_one({"email": email})


async def get_user_by_id(users, user_id: str) -> Optional[dict]:
    if not ObjectId.is_valid(user_id):
        return None
    return await users.find_one({"_id": ObjectId(user_id)})


async def set_user_role(users, email: str, role: Role) -> bool:
    result = await users.update_one({"email": email}, {"$set": {"role": role.value}})
    return result.matched_count > 0
