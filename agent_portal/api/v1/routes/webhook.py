# agent_portal/api/v1/routes/webhook.py
import logging
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError

from agent_portal.core.access import user_can_access
from agent_portal.core.auth import get_optional_user
from agent_portal.core.config import settings
from agent_portal.core.http import get_http_client
from agent_portal.db.database import get_agents_collection
from agent_portal.models.webhook import WebhookRequest, parse_webhook_form
from agent_portal.services.agent_service import get_agent_by_id
from agent_portal.services.webhook_proxy import WebhookProxy, error_response

logger = logging.getLogger(__name__)

router = APIRouter()


def get_webhook_proxy(http: httpx.AsyncClient = Depends(get_http_client)) -> WebhookProxy:
    timeout = httpx.Timeout(settings.webhook_read_timeout, connect=settings.webhook_connect_timeout)
    return WebhookProxy(http, timeout)


@router.post("/webhook")
async def proxy_webhook(
    request: Request,
    current_user: Optional[dict] = Depends(get_optional_user),
    agents=Depends(get_agents_collection),
    proxy: WebhookProxy = Depends(get_webhook_proxy),
):
    """
    Reenvía el mensaje al webhook del agente y devuelve su respuesta en streaming.
    """
    try:
        form = await request.form()
        try:
            payload = await parse_webhook_form(form)
        finally:
            await form.close()
    except Exception as e:
        logger.exception("API proxy - could not read the request form")
        return error_response(500, "Internal server error", str(e))

    if not str(payload.get("webhookUrl") or "").strip():
        return error_response(400, "Webhook URL is required")

    try:
        webhook_request = WebhookRequest.model_validate(payload)
    except ValidationError as e:
        return error_response(400, "Invalid webhook request", str(e))

    agent = await get_agent_by_id(agents, webhook_request.agent_id)
    if agent is None:
        return error_response(404, "Agent not found")
    if not user_can_access(agent.access_level, current_user):
        return error_response(403, "Access denied")
    if webhook_request.webhook_url not in agent.webhook_targets():
        return error_response(400, "Webhook URL does not match the agent configuration")

    return await proxy.forward(webhook_request)
