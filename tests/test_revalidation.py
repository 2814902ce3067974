import json

import httpx

from app.core.config import get_settings
from app.services import revalidation


def _patch_transport(monkeypatch, handler):
    real_client = httpx.AsyncClient
    monkeypatch.setattr(
        revalidation.httpx,
        "AsyncClient",
        lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs),
    )


async def test_skipped_without_hook(monkeypatch):
    monkeypatch.setattr(get_settings(), "revalidate_url", None)
    assert await revalidation.revalidate_path("/") is False


async def test_posts_path_with_secret(monkeypatch):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((str(request.url), request.headers.get("X-Revalidate-Secret"), json.loads(request.content)))
        return httpx.Response(200)

    monkeypatch.setattr(get_settings(), "revalidate_url", "https://web.example.com/api/revalidate")
    monkeypatch.setattr(get_settings(), "revalidate_secret", "s3cret")
    _patch_transport(monkeypatch, handler)
    assert await revalidation.revalidate_path("/") is True
    assert seen == [("https://web.example.com/api/revalidate", "s3cret", {"path": "/"})]


async def test_hook_failure_is_swallowed(monkeypatch):
    monkeypatch.setattr(get_settings(), "revalidate_url", "https://web.example.com/api/revalidate")
    _patch_transport(monkeypatch, lambda request: httpx.Response(500))
    assert await revalidation.revalidate_path("/") is False
