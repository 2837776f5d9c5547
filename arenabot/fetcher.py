from __future__ import annotations

import logging
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0 Safari/537.36"
)


def build_client(*, timeout_seconds: float) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=timeout_seconds,
        follow_redirects=True,
        headers={"User-Agent": USER_AGENT},
    )


def extract_slot_links(html: str, *, page_url: str, selector: str, marker: str) -> list[str]:
    """Return absolute hrefs of anchors matching ``selector`` whose text contains ``marker``."""
    soup = BeautifulSoup(html, "html.parser")

    links: list[str] = []
    for a in soup.select(selector):
        href = a.get("href")
        if not href or marker not in a.get_text():
            continue
        links.append(urljoin(page_url, href))
    return links


async def fetch_slot_links(client: httpx.AsyncClient, url: str, *, selector: str, marker: str) -> list[str]:
    logger.info("Fetching day page: %s", url)
    response = await client.get(url)
    response.raise_for_status()

    links = extract_slot_links(response.text, page_url=str(response.url), selector=selector, marker=marker)
    logger.info("Found %d free slot links on %s", len(links), url)
    return links
