"""Reglas de acceso a los agentes según nivel de acceso, autenticación y rol.

El nivel ``public`` es exclusivo para visitantes anónimos: un usuario
autenticado, incluso administrador, no puede abrir un agente público.
"""
from typing import Any, Callable, Dict, Optional

from agent_portal.models.agents import AccessLevel
from agent_portal.models.user_models import Role

_ACCESS_RULES: Dict[AccessLevel, Callable[[bool, Optional[str]], bool]] = {
    AccessLevel.PUBLIC: lambda authenticated, role: not authenticated,
    AccessLevel.NON_CLIENT: lambda authenticated, role: authenticated and role in (Role.NON_CLIENT, Role.ADMIN),
    AccessLevel.PARTNER: lambda authenticated, role: role in (Role.PARTNER, Role.ADMIN),
    AccessLevel.ADMIN: lambda authenticated, role: role == Role.ADMIN,
}

_missing = set(AccessLevel) - set(_ACCESS_RULES)
if _missing:
    raise RuntimeError(f"No access rule for levels: {sorted(level.value for level in _missing)}")


def _as_level(access_level: Any) -> Optional[AccessLevel]:
    try:
        return AccessLevel(access_level)
    except (ValueError, TypeError):
        return None


def can_access(access_level: Any, is_authenticated: bool, role: Optional[str]) -> bool:
    level = _as_level(access_level)
    if level is None:
        return False
    return bool(_ACCESS_RULES[level](bool(is_authenticated), role))


def is_listed(access_level: Any, role: Optional[str]) -> bool:
    """Visibilidad en el catálogo de agentes: los públicos nunca se listan."""
    level = _as_level(access_level)
    if level is None or level is AccessLevel.PUBLIC:
        return False
    return can_access(level, True, role)


def caller_identity(user: Optional[dict]):
    """(autenticado, rol) a partir del documento de usuario actual."""
    if not user:
        return False, None
    return True, user.get("role")


def user_can_access(access_level: Any, user: Optional[dict]) -> bool:
    authenticated, role = caller_identity(user)
    return can_access(access_level, authenticated, role)
