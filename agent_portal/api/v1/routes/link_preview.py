from typing import Optional

import httpx
from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from agent_portal.core.config import settings
from agent_portal.core.http import get_http_client
from agent_portal.services.link_preview import LinkPreviewError, fetch_link_preview

router = APIRouter()


@router.get("/link-preview")
async def link_preview(
    url: Optional[str] = Query(None),
    http: httpx.AsyncClient = Depends(get_http_client),
):
    if not url:
        return JSONResponse({"error": "URL is required"}, status_code=400)
    try:
        preview = await fetch_link_preview(http, url, settings.link_preview_timeout)
    except LinkPreviewError as e:
        return JSONResponse(e.payload(), status_code=e.status_code)
    return preview
