import pytest
from typer.testing import CliRunner
from typing import Callable, Dict, List, Optional, Union

from foliorelay.domain.errors import InvalidResponse, NetworkFailure
from foliorelay.domain.interfaces.completion_provider import CompletionProvider
from foliorelay.domain.interfaces.transport import Transport
from foliorelay.domain.models.ai import CompletionRequest, CompletionResponse
from foliorelay.domain.models.common import ProviderName
from foliorelay.domain.models.transport import TransportRequest, TransportResponse
from foliorelay.infrastructure.config.settings import clear_test_config

Reply = Union[TransportResponse, Exception]


class FakeProvider(CompletionProvider):
    """Provider whose wire format is {'text': ...} at https://<name>.test/complete."""

    def __init__(self, name: str, configured: bool = True):
        self.name = ProviderName(name)
        self.model = f"{name}-model"
        self._configured = configured

    @property
    def configured(self) -> bool:
        return self._configured

    def build_request(self, request: CompletionRequest) -> TransportRequest:
        return TransportRequest(method="POST", url=f"https://{self.name}.test/complete", json_body={"prompt": request.prompt})

    def parse_response(self, response: TransportResponse) -> CompletionResponse:
        if not isinstance(response.body, dict) or "text" not in response.body:
            raise InvalidResponse("Invalid response format")
        return CompletionResponse(content=response.body["text"], model_name=self.model)


class FakeTransport(Transport):
    """Replays scripted replies per URL prefix and records every request sent.

    A script value may be a list (consumed in order, last entry repeats) or a
    callable taking the request.
    """

    def __init__(self, scripts: Optional[Dict[str, Union[List[Reply], Callable[[TransportRequest], Reply]]]] = None):
        self.scripts = dict(scripts or {})
        self.requests: List[TransportRequest] = []
        self.closed = False

    def calls_to(self, prefix: str) -> List[TransportRequest]:
        return [r for r in self.requests if r.url.startswith(prefix)]

    async def send(self, request: TransportRequest) -> TransportResponse:
        self.requests.append(request)
        for prefix in sorted(self.scripts, key=len, reverse=True):
            if request.url.startswith(prefix):
                script = self.scripts[prefix]
                if callable(script):
                    reply = script(request)
                else:
                    reply = script.pop(0) if len(script) > 1 else script[0]
                break
        else:
            raise NetworkFailure(f"No scripted reply for {request.url}")
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def aclose(self) -> None:
        self.closed = True


def ok(body, headers=None) -> TransportResponse:
    return TransportResponse(status_code=200, headers=headers or {}, body=body)


def status(code: int, body=None, headers=None) -> TransportResponse:
    return TransportResponse(status_code=code, headers=headers or {}, body=body)


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def no_sleep(mocker):
    """Makes asyncio.sleep return immediately while recording requested delays."""
    import asyncio
    delays: List[float] = []
    real_sleep = asyncio.sleep

    async def fake_sleep(seconds, *args, **kwargs):
        delays.append(seconds)
        await real_sleep(0)

    mocker.patch("asyncio.sleep", side_effect=fake_sleep)
    return delays


@pytest.fixture(autouse=True)
def isolate_config(monkeypatch):
    """Keeps real credentials and earlier test overrides out of each test."""
    for var in (
        "OPENROUTER_API_KEY", "GEMINI_API_KEY", "OPENAI_API_KEY",
        "GITHUB_ACCESS_TOKEN", "NEXT_PUBLIC_GITHUB_ACCESS_TOKEN", "AI_DEFAULT_PROVIDER",
    ):
        monkeypatch.delenv(var, raising=False)
    clear_test_config()
    yield
    clear_test_config()
