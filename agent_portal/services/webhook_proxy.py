"""Reenvío de mensajes de chat al webhook de un agente.

Cada llamada hace un único POST saliente, sin reintentos, y devuelve el
cuerpo del webhook como un stream de bytes sin acumularlo en memoria.
"""
import logging
from typing import AsyncIterator, List, Tuple

import httpx
from fastapi.responses import JSONResponse
from starlette.responses import Response, StreamingResponse

from agent_portal.models.webhook import WebhookRequest

logger = logging.getLogger(__name__)

# Cabeceras que no se reenvían al cliente
EXCLUDED_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailer",
    "transfer-encoding",
    "upgrade",
    "content-length",
}

NO_BODY_STATUSES = {204, 205, 304}


def error_response(status_code: int, error: str, details: str = None) -> JSONResponse:
    content = {"error": error}
    if details is not None:
        content["details"] = details
    return JSONResponse(content, status_code=status_code)


def relay_headers(headers: httpx.Headers) -> List[Tuple[str, str]]:
    """Cabeceras a reenviar; las repetidas (p. ej. set-cookie) se conservan por separado."""
    return [(key, value) for key, value in headers.multi_items() if key.lower() not in EXCLUDED_HEADERS]


def _has_body(response: httpx.Response) -> bool:
    if response.status_code in NO_BODY_STATUSES:
        return False
    return response.headers.get("content-length") != "0"


async def relay_stream(upstream: httpx.Response) -> AsyncIterator[bytes]:
    try:
        async for chunk in upstream.aiter_raw():
            yield chunk
    finally:
        await upstream.aclose()


class WebhookProxy:
    def __init__(self, http: httpx.AsyncClient, timeout: httpx.Timeout):
        self.http = http
        self.timeout = timeout

    async def forward(self, request: WebhookRequest) -> Response:
        try:
            outbound = self.http.build_request(
                "POST",
                request.webhook_url,
                files=request.multipart_parts(),
                timeout=self.timeout,
            )
            upstream = await self.http.send(outbound, stream=True)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error(f"Webhook proxy error for agent {request.agent_id}: {e!r}")
            return error_response(500, "Internal server error", str(e) or type(e).__name__)

        if not upstream.is_success:
            try:
                await upstream.aread()
            except httpx.HTTPError as e:
                logger.error(f"Could not read webhook error body ({upstream.status_code}): {e!r}")
                return error_response(500, "Internal server error", str(e) or type(e).__name__)
            finally:
                await upstream.aclose()
            error_text = upstream.text
            logger.error(f"Webhook returned {upstream.status_code}: {error_text}")
            return error_response(
                upstream.status_code,
                f"Webhook error: {upstream.status_code} {upstream.reason_phrase}",
                error_text,
            )

        if not _has_body(upstream):
            await upstream.aclose()
            return error_response(500, "No stream available from webhook.")

        response = StreamingResponse(relay_stream(upstream), status_code=upstream.status_code)
        for key, value in relay_headers(upstream.headers):
            response.headers.append(key, value)
        return response
