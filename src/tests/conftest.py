"""
Shared test fixtures for pytest
"""

import asyncio

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from core import PathPlaybackEngine, RoundController
from models import GameResult
from services import event_bus
from services.event_bus import EventBus
from services.logger import cleanup_logging, setup_logging
from services.round_authority import RoundAuthorityClient

DIRECTIONS = ["LEFT", "RIGHT"] * 6


def make_path(drop_column: int = 6) -> list[dict]:
    """12-step zig-zag descent that lands back on drop_column."""
    steps = []
    column = drop_column
    for row, direction in enumerate(DIRECTIONS):
        column += 1 if direction == "RIGHT" else -1
        steps.append({"row": row, "column": column, "direction": direction})
    return steps


@pytest.fixture(scope="session", autouse=True)
def setup_test_logging(tmp_path_factory):
    """Log to a temp directory, never to the console"""
    setup_logging(
        {
            "log_dir": str(tmp_path_factory.mktemp("logs")),
            "console_output": False,
        }
    )
    yield
    cleanup_logging()


@pytest.fixture(autouse=True)
def cleanup_event_bus():
    """Clean up event bus after each test"""
    yield
    event_bus.clear_all()


@pytest.fixture
def bus():
    """Fresh EventBus isolated from the global one"""
    return EventBus()


@pytest.fixture
def sample_path():
    return make_path(6)


@pytest.fixture
def start_payload(sample_path):
    """Start response for round r1: bin 6, 2.5x on a 100 cent bet"""
    return {
        "roundId": "r1",
        "pegMap": [[0.5] * (row + 1) for row in range(12)],
        "path": sample_path,
        "binIndex": 6,
        "payoutMultiplier": 2.5,
        "betCents": 100,
        "winAmount": 250,
        "clientSeed": "abc",
        "nonce": "1",
    }


@pytest.fixture
def game_result(start_payload):
    """GameResult for round r1 with the drop column filled in"""
    return GameResult.model_validate({**start_payload, "dropColumn": 6})


@pytest.fixture
def verify_payload(sample_path):
    return {
        "commitHex": "c0ffee",
        "combinedSeed": "5eed",
        "pegMapHash": "abc123",
        "binIndex": 6,
        "payoutMultiplier": 2.5,
        "path": sample_path,
    }


class FakeAuthority:
    """
    In-process round authority.

    responses maps an endpoint name to (status, body); a str body is sent
    as text/plain, bytes as raw utf-8 labelled text, anything else as JSON.
    queued holds one-shot (status, body) answers served before responses.
    delays holds per-endpoint sleeps.
    """

    def __init__(self, start_payload: dict, verify_payload: dict):
        self.requests: list[tuple[str, dict, dict, object]] = []
        self.responses = {
            "commit": (200, {"roundId": "r1"}),
            "start": (200, start_payload),
            "reveal": (200, {"serverSeed": "s3cr3t", "clientSeed": "abc", "nonce": "1"}),
            "verify": (200, verify_payload),
        }
        self.queued: dict[str, list[tuple[int, object]]] = {}
        self.delays: dict[str, float] = {}

    def calls(self, name: str) -> list[tuple[str, dict, dict, object]]:
        return [request for request in self.requests if request[0] == name]

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/api/rounds/commit", self._handler("commit"))
        app.router.add_post("/api/rounds/{round_id}/start", self._handler("start"))
        app.router.add_post("/api/rounds/{round_id}/reveal", self._handler("reveal"))
        app.router.add_get("/api/verify", self._handler("verify"))
        return app

    def _handler(self, name: str):
        async def handle(request: web.Request) -> web.Response:
            body = await request.json() if request.can_read_body else None
            self.requests.append((name, dict(request.match_info), dict(request.query), body))

            delay = self.delays.get(name)
            if delay:
                await asyncio.sleep(delay)

            queued = self.queued.get(name)
            status, payload = queued.pop(0) if queued else self.responses[name]
            if isinstance(payload, bytes):
                return web.Response(
                    status=status, body=payload, content_type="text/plain", charset="utf-8"
                )
            if isinstance(payload, str):
                return web.Response(status=status, text=payload)
            return web.json_response(payload, status=status)

        return handle


@pytest.fixture
def fake_authority(start_payload, verify_payload):
    return FakeAuthority(start_payload, verify_payload)


@pytest_asyncio.fixture
async def authority_server(fake_authority):
    server = TestServer(fake_authority.app())
    await server.start_server()
    yield server
    await server.close()


@pytest.fixture
def authority_url(authority_server):
    return f"http://{authority_server.host}:{authority_server.port}"


@pytest_asyncio.fixture
async def authority_client(authority_url):
    client = RoundAuthorityClient(base_url=authority_url, timeout=2.0)
    yield client
    await client.close()


@pytest.fixture
def instant_engine(bus):
    """Playback engine with every delay set to zero"""
    return PathPlaybackEngine(lead_in=0, tick_interval=0, settle_delay=0, bus=bus)


@pytest_asyncio.fixture
async def controller(authority_client, instant_engine, bus):
    controller = RoundController(authority_client, engine=instant_engine, bus=bus)
    yield controller
    await controller.aclose()
