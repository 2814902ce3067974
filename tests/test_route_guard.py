import pytest
from fastapi import FastAPI, Request
from httpx import ASGITransport, AsyncClient

from app.core.exceptions import AuthDenied
from app.core.route_guard import RouteGuardMiddleware, create_route_matcher


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("/", True),
        ("/api/webhooks/clerk", True),
        ("/api/webhooks/clerk/extra", False),
        ("/users/42", True),
        ("/users/42/posts", False),
        ("/users/", False),
        ("/teams/7/members", True),
        ("/dashboard", True),
        ("/dashboard/settings/billing", True),
        ("/dash", False),
        ("/health", False),
    ],
)
def test_matcher_patterns(path, expected):
    matcher = create_route_matcher(
        ["/", "/api/webhooks/clerk", "/users/{user_id}", "/teams/:team_id/members", "/dashboard(.*)"]
    )
    assert matcher.matches(path) is expected


def test_matcher_escapes_literal_characters():
    matcher = create_route_matcher(["/files/a.txt"])
    assert matcher.matches("/files/a.txt")
    assert not matcher.matches("/files/abtxt")


def test_matcher_is_immutable():
    matcher = create_route_matcher(["/"])
    assert matcher.patterns == ("/",)
    with pytest.raises(AttributeError):
        matcher.patterns = ("/other",)


def test_matcher_rejects_relative_pattern():
    with pytest.raises(ValueError):
        create_route_matcher(["dashboard"])


class FakeVerifier:
    def __init__(self, allow: bool):
        self.allow = allow
        self.calls = []

    async def protect(self, request: Request):
        self.calls.append(request.url.path)
        if not self.allow:
            raise AuthDenied("Not authenticated")
        return {"sub": "user_1"}


def _guarded_app(verifier, sign_in_url=None):
    reached = []
    app = FastAPI()
    app.add_middleware(
        RouteGuardMiddleware,
        matcher=create_route_matcher(["/private(.*)"]),
        verifier=verifier,
        sign_in_url=sign_in_url,
    )

    @app.get("/private/data")
    async def private(request: Request):
        reached.append("private")
        return {"sub": request.state.auth["sub"]}

    @app.get("/public")
    async def public():
        reached.append("public")
        return {"ok": True}

    return app, reached


async def _get(app, path, **kwargs):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        return await ac.get(path, **kwargs)


async def test_protected_path_without_session_is_halted():
    verifier = FakeVerifier(allow=False)
    app, reached = _guarded_app(verifier)
    r = await _get(app, "/private/data")
    assert r.status_code == 401
    assert r.json()["error"]["code"] == "UNAUTHORIZED"
    assert reached == []
    assert verifier.calls == ["/private/data"]


async def test_protected_path_with_session_reaches_handler():
    app, reached = _guarded_app(FakeVerifier(allow=True))
    r = await _get(app, "/private/data")
    assert r.status_code == 200
    assert r.json() == {"sub": "user_1"}
    assert reached == ["private"]


@pytest.mark.parametrize("allow", [True, False])
async def test_unprotected_path_never_checks_session(allow):
    verifier = FakeVerifier(allow=allow)
    app, reached = _guarded_app(verifier)
    r = await _get(app, "/public")
    assert r.status_code == 200
    assert verifier.calls == []
    assert reached == ["public"]


async def test_browser_is_redirected_to_sign_in():
    app, reached = _guarded_app(FakeVerifier(allow=False), sign_in_url="https://accounts.example.com/sign-in")
    r = await _get(app, "/private/data", headers={"Accept": "text/html"})
    assert r.status_code == 307
    assert r.headers["location"].startswith("https://accounts.example.com/sign-in?redirect_url=")
    assert reached == []


async def test_api_client_gets_401_even_with_sign_in_url():
    app, _ = _guarded_app(FakeVerifier(allow=False), sign_in_url="https://accounts.example.com/sign-in")
    r = await _get(app, "/private/data", headers={"Accept": "application/json"})
    assert r.status_code == 401


async def test_options_requests_skip_the_session_check():
    verifier = FakeVerifier(allow=False)
    app, reached = _guarded_app(verifier)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        r = await ac.options("/private/data")
    assert r.status_code != 401
    assert verifier.calls == []
    assert reached == []
