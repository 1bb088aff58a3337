"""Loads rule-engine JavaScript sources (axe-core, HTML_CodeSniffer) for injection."""
import logging
import os
from typing import Dict, Optional

import httpx

logger = logging.getLogger(__name__)

# Seconds
DOWNLOAD_TIMEOUT = 30.0
CONNECT_TIMEOUT = 5.0

# Engine sources by path or URL, kept for the life of the process
_scripts: Dict[str, str] = {}


class ScriptUnavailable(RuntimeError):
    """The engine source could not be read or downloaded."""


async def download_script(
    url: str,
    timeout: float = DOWNLOAD_TIMEOUT,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> str:
    """GET ``url`` following redirects and return the body text.

    Raises ScriptUnavailable on transport errors and non-200 responses.
    """
    logger.debug(f"Downloading engine script {url} (timeout: {timeout}s)")
    timeout_config = httpx.Timeout(timeout=timeout, connect=CONNECT_TIMEOUT)
    try:
        async with httpx.AsyncClient(timeout=timeout_config, follow_redirects=True, transport=transport) as client:
            response = await client.get(url)
    except httpx.HTTPError as e:
        logger.warning(f"Download of {url} failed: {e}")
        raise ScriptUnavailable(f"Downloading {url} failed: {e}") from e

    if response.status_code != 200:
        raise ScriptUnavailable(f"Downloading {url} returned HTTP {response.status_code}")
    return response.text


def _read_file(source: str) -> str:
    path = os.path.expanduser(source)
    if not os.path.isfile(path):
        raise ScriptUnavailable(f"Script file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


async def load_script(source: str) -> str:
    """Return the JavaScript text at ``source``, a local path or an http(s) URL.

    The first successful load of each source is reused for later scans.
    """
    cached = _scripts.get(source)
    if cached is not None:
        return cached

    if source.startswith(("http://", "https://")):
        text = await download_script(source)
    else:
        text = _read_file(source)

    if not text.strip():
        raise ScriptUnavailable(f"Script at {source} is empty")

    logger.info(f"Loaded engine script from {source} ({len(text)} chars)")
    _scripts[source] = text
    return text


def clear_scripts() -> None:
    _scripts.clear()
