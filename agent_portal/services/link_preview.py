import asyncio
import logging
from typing import Optional

import httpx
from bs4 import BeautifulSoup

from agent_portal.models.link_preview import LinkPreview

logger = logging.getLogger(__name__)

BROWSER_HEADERS = {
    'User-Agent': (
        'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
        '(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36'
    ),
    'Accept': 'text/html',
}


class LinkPreviewError(Exception):
    def __init__(self, status_code: int, error: str, details: Optional[str] = None):
        super().__init__(error)
        self.status_code = status_code
        self.error = error
        self.details = details

    def payload(self) -> dict:
        content = {"error": self.error}
        if self.details is not None:
            content["details"] = self.details
        return content


def _meta_content(soup: BeautifulSoup, name: str) -> Optional[str]:
    for attrs in ({'property': f'og:{name}'}, {'name': name}, {'property': f'twitter:{name}'}):
        tag = soup.find('meta', attrs=attrs)
        if tag and tag.get('content'):
            return tag['content']
    return None


def extract_preview(html: str, url: str) -> LinkPreview:
    soup = BeautifulSoup(html, "html.parser")
    title_tag = soup.find('title')
    title = _meta_content(soup, 'title') or (title_tag.get_text().strip() if title_tag else '') or url
    return LinkPreview(
        title=title,
        description=_meta_content(soup, 'description'),
        image=_meta_content(soup, 'image'),
    )


async def _fetch_preview(http: httpx.AsyncClient, url: str, timeout: float) -> LinkPreview:
    async with http.stream("GET", url, headers=BROWSER_HEADERS, timeout=timeout, follow_redirects=True) as response:
        if not response.is_success:
            logger.error(f"Failed to fetch the URL: {response.status_code} {response.reason_phrase}")
            raise LinkPreviewError(response.status_code, f"Failed to fetch the URL: {response.reason_phrase}")

        # Solo se descarga el cuerpo de las páginas HTML
        content_type = response.headers.get('content-type')
        if not content_type or 'text/html' not in content_type:
            logger.info(f"Skipping preview for non-HTML content type: {content_type}")
            return LinkPreview(title=url, description='Link to a non-HTML resource.', image=None)

        await response.aread()
        return extract_preview(response.text, url)


async def fetch_link_preview(http: httpx.AsyncClient, url: str, timeout: float) -> LinkPreview:
    """Vista previa de ``url``; toda la operación tiene un límite de ``timeout`` segundos."""
    logger.info(f"Fetching preview for URL: {url}")
    try:
        return await asyncio.wait_for(_fetch_preview(http, url, timeout), timeout)
    except asyncio.TimeoutError:
        logger.error(f"Link preview for {url} timed out after {timeout}s")
        raise LinkPreviewError(500, 'Failed to fetch link preview', f"Timed out after {timeout} seconds")
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.error(f"Error fetching link preview for {url}: {e!r}")
        raise LinkPreviewError(500, 'Failed to fetch link preview', str(e) or type(e).__name__)
