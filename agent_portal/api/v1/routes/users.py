import httpx
from fastapi import APIRouter, Depends

from agent_portal.core.auth import get_current_user
from agent_portal.core.http import get_http_client
from agent_portal.db.database import get_users_collection
from agent_portal.models.user_models import RegisterUser, UserResponse
from agent_portal.services.user_services import get_user_by_id, register_user, user_serializer

router = APIRouter()


@router.post("/register", response_model=UserResponse, status_code=201)
async def register_user_endpoint(
    user_data: RegisterUser,
    users=Depends(get_users_collection),
    http: httpx.AsyncClient = Depends(get_http_client),
):
    """
    Endpoint para registrar un nuevo usuario.
    """
    user_id = await register_user(users, http, user_data)
    return user_serializer(await get_user_by_id(users, user_id))


@router.get("/me", response_model=UserResponse)
async def get_me_endpoint(current_user: dict = Depends(get_current_user)):
    """
    Perfil del usuario autenticado, incluido su rol.
    """
    return user_serializer(current_user)
