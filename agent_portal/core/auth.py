# agent_portal/core/auth.py
import logging
from datetime import datetime, timedelta
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from jose import JWTError, jwt

from agent_portal.core.config import settings
from agent_portal.core.http import get_http_client
from agent_portal.db.database import get_users_collection
from agent_portal.models.user_models import Role, TokenResponse
from agent_portal.services.user_services import (
    get_user_by_email,
    get_user_by_id,
    refresh_user_role,
    verify_password,
)

logger = logging.getLogger(__name__)

router = APIRouter()

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/token")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/token", auto_error=False)


async def authenticate_user(users, email: str, password: str):
    user = await get_user_by_email(users, email)
    if not user:
        return False
    if not verify_password(password, user['hashed_password']):
        return False
    return user


def create_access_token(data: dict, expires_delta: timedelta = None):
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=15)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)
    return encoded_jwt


@router.post("/token", response_model=TokenResponse)
async def login_for_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    users=Depends(get_users_collection),
    http: httpx.AsyncClient = Depends(get_http_client),
):
    user = await authenticate_user(users, form_data.username, form_data.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    role = await refresh_user_role(users, http, user)
    access_token_expires = timedelta(minutes=settings.access_token_expire_minutes)
    access_token = create_access_token(
        data={"sub": str(user['_id']), "email": user['email']}, expires_delta=access_token_expires
    )
    logger.info(f"Issued access token for user {user['_id']}")
    return TokenResponse(
        access_token=access_token,
        role=role,
        redirect_to="/admin" if role == Role.ADMIN else "/",
    )


async def _user_from_token(token: str, users):
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
        user_id: str = payload.get("sub")
        if user_id is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception

    user = await get_user_by_id(users, user_id)
    if user is None:
        raise credentials_exception
    return user


async def get_current_user(token: str = Depends(oauth2_scheme), users=Depends(get_users_collection)):
    return await _user_from_token(token, users)


async def get_optional_user(
    token: Optional[str] = Depends(optional_oauth2_scheme),
    users=Depends(get_users_collection),
) -> Optional[dict]:
    """Usuario actual, o None para visitantes anónimos."""
    if not token:
        return None
    return await _user_from_token(token, users)


async def require_admin(current_user: dict = Depends(get_current_user)):
    if current_user.get("role") != Role.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin role required",
        )
    return current_user
