import logging
from typing import Dict, Optional

import html2text
import requests
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

FETCH_TIMEOUT_SECONDS = 10

HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; Googlebot/2.1; +http://www.google.com/bot.html)",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}


def html_to_text(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    return html2text.html2text(str(soup)).strip()


def _result(url: str, content: Optional[str] = None, error: Optional[str] = None) -> Dict[str, Optional[str]]:
    return {"url": url, "content": content, "error": error}


def fetch_website_content(url: str, timeout: int = FETCH_TIMEOUT_SECONDS) -> Dict[str, Optional[str]]:
    """
    Fetch the readable text of a public web page.

    Args:
        url: Page to fetch
        timeout: Seconds before giving up

    Returns:
        Dict with ``url``, ``content`` (markdown-ish text or None) and
        ``error`` (None on success). Failures are reported, never raised.
    """
    logger.info("Fetching website content: %s", url)
    try:
        resp = requests.get(url, headers=HEADERS, timeout=timeout)
    except requests.Timeout:
        logger.warning("Timeout fetching %s", url)
        return _result(url, error=f"Timeout fetching URL: {url}. The server took too long to respond.")
    except requests.RequestException as e:
        logger.warning("Failed to fetch %s: %s", url, e)
        return _result(url, error=f"Error fetching URL {url}: {e}. The website might be offline or blocking access.")

    if not resp.ok:
        logger.warning("Failed to fetch %s. Status: %s", url, resp.status_code)
        return _result(
            url,
            error=f"Failed to fetch URL. Status: {resp.status_code} {resp.reason}. "
                  "The website might be down, inaccessible, or blocking requests.",
        )

    content_type = resp.headers.get("content-type", "")
    if "text/html" in content_type:
        text = html_to_text(resp.text)
    elif "text/plain" in content_type:
        text = resp.text
    else:
        logger.warning("Non-HTML/text content type for %s: %s", url, content_type)
        return _result(
            url,
            error=f"Unsupported content type: {content_type or None}. Only HTML or plain text pages can be processed.",
        )

    if len(text.strip()) < 100:
        logger.warning("Fetched content for %s seems very short or empty.", url)
    return _result(url, content=text)
