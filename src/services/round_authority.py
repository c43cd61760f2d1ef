"""
Round Authority Client - async HTTP client for the commit/start/reveal/verify API.

Provides:
- One aiohttp session per client, closed via `async with` or close()
- A total timeout on every call
- Status checked before the body is decoded; non-2xx bodies kept as text
- Content-Type checked before JSON parsing
- Memoization of the first successful reveal per round id

Usage:
    async with RoundAuthorityClient() as client:
        commit = await client.commit()
        result = await client.start(Round(roundId=commit.round_id, ...))
"""

import asyncio
import logging
from typing import Any

import aiohttp
from pydantic import ValidationError

from config import config
from models import CommitResponse, GameResult, RevealResponse, Round, VerificationReport
from services.logger import PerformanceLogger

logger = logging.getLogger(__name__)


class AuthorityError(Exception):
    """Base class for round authority failures"""

    pass


class AuthorityHTTPError(AuthorityError):
    """The authority answered with a non-2xx status"""

    def __init__(self, method: str, path: str, status: int, body: str):
        self.method = method
        self.path = path
        self.status = status
        self.body = body
        super().__init__(f"{method} {path} returned HTTP {status}: {body}")


class AuthorityUnavailable(AuthorityError):
    """The request never produced a response (DNS, connection, timeout)"""

    pass


class AuthorityResponseError(AuthorityError):
    """A 2xx response whose body is not the expected JSON document"""

    pass


class RoundAuthorityClient:
    """
    Async client for the round authority.

    Session ownership: a session passed in is borrowed and never closed here;
    otherwise one is created lazily and closed by close().
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        session: aiohttp.ClientSession | None = None,
    ):
        """
        Initialize client.

        Args:
            base_url: Authority root URL (default: config API base_url)
            timeout: Total seconds allowed per call (default: config NETWORK timeout)
            session: Optional externally managed aiohttp session
        """
        self.base_url = (base_url or config.get("api", "base_url")).rstrip("/")
        self.timeout = timeout if timeout is not None else config.get("network", "timeout")
        self._session = session
        self._owns_session = session is None
        self._reveals: dict[str, RevealResponse] = {}

    async def __aenter__(self) -> "RoundAuthorityClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"Accept": "application/json"},
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the owned HTTP session."""
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    # ========================================================================
    # TRANSPORT
    # ========================================================================

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json_body: dict | None = None,
        params: dict | None = None,
    ) -> Any:
        """Issue one request and return the decoded JSON body."""
        url = f"{self.base_url}{path}"
        session = self._get_session()
        kwargs: dict[str, Any] = {"timeout": aiohttp.ClientTimeout(total=self.timeout)}
        if json_body is not None:
            kwargs["json"] = json_body
        elif method == "POST":
            kwargs["headers"] = {"Content-Type": "application/json"}
        if params is not None:
            kwargs["params"] = params

        try:
            with PerformanceLogger(logger, f"{method} {path}"):
                async with session.request(method, url, **kwargs) as resp:
                    if not 200 <= resp.status < 300:
                        body = await resp.text(errors="replace")
                        logger.warning(f"{method} {path} failed with HTTP {resp.status}: {body}")
                        raise AuthorityHTTPError(method, path, resp.status, body)

                    if resp.content_type != "application/json":
                        body = await resp.text(errors="replace")
                        raise AuthorityResponseError(
                            f"{method} {path} returned {resp.content_type or 'no content type'}, "
                            f"expected JSON: {body[:200]}"
                        )

                    try:
                        return await resp.json()
                    except ValueError as e:
                        raise AuthorityResponseError(
                            f"{method} {path} returned malformed JSON: {e}"
                        ) from e
        except asyncio.TimeoutError as e:
            raise AuthorityUnavailable(f"{method} {path} timed out after {self.timeout}s") from e
        except aiohttp.ClientError as e:
            raise AuthorityUnavailable(f"{method} {path} failed: {e}") from e

    @staticmethod
    def _parse(model, payload: Any, what: str):
        if not isinstance(payload, dict):
            raise AuthorityResponseError(f"{what} response is not a JSON object")
        try:
            return model.model_validate(payload)
        except (ValidationError, TypeError, ValueError) as e:
            raise AuthorityResponseError(f"{what} response failed validation: {e}") from e

    # ========================================================================
    # ROUND API
    # ========================================================================

    async def commit(self) -> CommitResponse:
        """POST /api/rounds/commit"""
        payload = await self._request("POST", "/api/rounds/commit")
        commit = self._parse(CommitResponse, payload, "commit")
        logger.info(f"Committed round {commit.round_id}")
        return commit

    async def start(self, round_: Round) -> GameResult:
        """POST /api/rounds/{roundId}/start"""
        payload = await self._request(
            "POST",
            f"/api/rounds/{round_.round_id}/start",
            json_body=round_.start_payload(),
        )
        return self._parse(GameResult, payload, "start")

    async def reveal(self, round_id: str) -> RevealResponse:
        """
        POST /api/rounds/{roundId}/reveal

        The first successful answer per round id is cached and returned for
        every later call, so repeated reveals always agree.
        """
        cached = self._reveals.get(round_id)
        if cached is not None:
            logger.debug(f"Reveal for round {round_id} served from cache")
            return cached

        payload = await self._request("POST", f"/api/rounds/{round_id}/reveal")
        reveal = self._parse(RevealResponse, payload, "reveal")

        # A concurrent reveal may have landed first; keep the earliest answer
        reveal = self._reveals.setdefault(round_id, reveal)
        logger.info(f"Revealed server seed for round {round_id}")
        return reveal

    async def verify(self, query: dict[str, str]) -> VerificationReport:
        """GET /api/verify?serverSeed&clientSeed&nonce&dropColumn"""
        payload = await self._request("GET", "/api/verify", params=query)
        return self._parse(VerificationReport, payload, "verify")
