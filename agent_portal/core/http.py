import httpx
from fastapi import FastAPI, Request

from agent_portal.core.config import settings


def create_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.webhook_read_timeout, connect=settings.webhook_connect_timeout),
        follow_redirects=False,
    )


async def open_http_client(app: FastAPI):
    app.state.http_client = create_http_client()


async def close_http_client(app: FastAPI):
    client = getattr(app.state, "http_client", None)
    if client is not None:
        await client.aclose()


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client
