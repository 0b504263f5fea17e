import json
from typing import Any
from urllib.parse import parse_qs

import httpx
import pytest

from okta_pkce.config import TokenProviderConfig

BASE_URL = "https://example.okta.com"
ZONE_ID = "aus1zone"
REDIRECT_URI = "https://app.example.com/login/callback"

AUTHORIZE_HTML = """<!DOCTYPE html>
<html>
<head><title>Redirecting</title></head>
<body onload="document.forms[0].submit()">
<form id="appForm" method="POST" action="{redirect_uri}">
  <input type="hidden" name="code" value="{code}"/>
  <input type="hidden" name="state" value="{redirect_uri}"/>
</form>
</body>
</html>"""

ERROR_HTML = """<html><body>
<form id="appForm" method="POST" action="{redirect_uri}">
  <input type="hidden" name="error" value="{error}"/>
  <input type="hidden" name="error_description" value="{description}"/>
</form>
</body></html>"""


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeOkta:
    """Scripted identity provider behind an httpx.MockTransport.

    Defaults describe a successful flow; individual steps can be replaced
    with a custom ``httpx.Response`` or exception.
    """

    def __init__(
        self,
        session_token: str = "st1",
        code: str = "authcode123",
        access_tokens: list[str] | None = None,
    ):
        self.session_token = session_token
        self.code = code
        self.access_tokens = list(access_tokens or ["tok-abc"])
        self.requests: list[httpx.Request] = []
        self.overrides: dict[str, httpx.Response | Exception] = {}
        self.token_calls = 0

    def requests_to(self, step: str) -> list[httpx.Request]:
        return [r for r in self.requests if self._step_for(r) == step]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport())

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        step = self._step_for(request)

        override = self.overrides.get(step)
        if isinstance(override, Exception):
            raise override
        if override is not None:
            return override

        if step == "authenticate":
            return httpx.Response(
                200, json={"status": "SUCCESS", "sessionToken": self.session_token}
            )
        if step == "authorize":
            return httpx.Response(
                200,
                html=AUTHORIZE_HTML.format(redirect_uri=REDIRECT_URI, code=self.code),
            )
        if step == "exchange":
            index = min(self.token_calls, len(self.access_tokens) - 1)
            self.token_calls += 1
            return httpx.Response(
                200,
                json={
                    "token_type": "Bearer",
                    "expires_in": 3600,
                    "access_token": self.access_tokens[index],
                    "scope": "openid profile offline_access email",
                },
            )
        return httpx.Response(404)

    @staticmethod
    def _step_for(request: httpx.Request) -> str:
        path = request.url.path
        if path == "/api/v1/authn":
            return "authenticate"
        if path == f"/oauth2/{ZONE_ID}/v1/authorize":
            return "authorize"
        if path == f"/oauth2/{ZONE_ID}/v1/token":
            return "exchange"
        return "unknown"


def json_body(request: httpx.Request) -> dict[str, Any]:
    return json.loads(request.content)


def form_body(request: httpx.Request) -> dict[str, str]:
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


def query_params(request: httpx.Request) -> dict[str, str]:
    return dict(request.url.params)


@pytest.fixture
def config() -> TokenProviderConfig:
    return TokenProviderConfig(
        base_url=BASE_URL,
        identity_zone_id=ZONE_ID,
        username="svc-reporting@example.com",
        password="hunter2",
        client_id="0oaclient123",
        redirect_uri=REDIRECT_URI,
    )


@pytest.fixture
def fake_okta() -> FakeOkta:
    return FakeOkta()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
