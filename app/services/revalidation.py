"""Notify the rendering layer that cached output for a path is stale."""

import httpx

from app.core.config import get_settings
from app.core.logging import get_logger

log = get_logger(__name__)

REVALIDATE_TIMEOUT_SECONDS = 5.0


async def revalidate_path(path: str) -> bool:
    """POST {"path": path} to the configured hook. Returns True if delivered.

    Never raises: a failed notification must not undo the write that caused it.
    """
    settings = get_settings()
    if not settings.revalidate_url:
        log.debug("revalidate_skipped", path=path)
        return False
    headers = {}
    if settings.revalidate_secret:
        headers["X-Revalidate-Secret"] = settings.revalidate_secret
    try:
        async with httpx.AsyncClient(timeout=REVALIDATE_TIMEOUT_SECONDS) as client:
            resp = await client.post(settings.revalidate_url, json={"path": path}, headers=headers)
            resp.raise_for_status()
    except httpx.HTTPError as e:
        log.warning("revalidate_failed", path=path, error=str(e))
        return False
    log.info("revalidated", path=path)
    return True
