"""
Tests for RoundController against the in-process authority
"""

import asyncio
from decimal import Decimal

import pytest

from core import CommitFailed, InvalidInput, NoResultAvailable, StartFailed
from models import GameResult, RoundState
from services import Events
from utils import format_cents


async def wait_for_state(controller, state, timeout=1.0):
    async def poll():
        while controller.state != state:
            await asyncio.sleep(0.005)

    await asyncio.wait_for(poll(), timeout)


async def drain_background(controller):
    await asyncio.gather(*list(controller._background), return_exceptions=True)


class TestHappyPath:
    @pytest.mark.asyncio
    async def test_drop_animates_then_shows_result(self, controller, bus, fake_authority):
        completed = []
        bus.subscribe(Events.ROUND_COMPLETED, completed.append, weak=False)

        result = await controller.request_drop(6, "1.00", "abc")

        assert controller.state == RoundState.ANIMATING
        assert result.round_id == "r1"

        await controller.wait_for_playback()

        assert controller.state == RoundState.RESULT_SHOWN
        assert len(completed) == 1
        shown = completed[0]["data"]
        assert isinstance(shown, GameResult)
        assert shown.bin_index == 6
        assert shown.payout_multiplier == Decimal("2.5")
        assert format_cents(shown.win_amount) == "$2.50"

    @pytest.mark.asyncio
    async def test_start_request_and_drop_column(self, controller, fake_authority):
        result = await controller.request_drop(6, "1.00", "abc")

        _, match_info, _, body = fake_authority.calls("start")[0]
        assert match_info["round_id"] == "r1"
        assert body == {"clientSeed": "abc", "betCents": 100, "dropColumn": 6}
        assert result.drop_column == 6

    @pytest.mark.asyncio
    async def test_reveal_runs_in_background_after_playback(self, controller, fake_authority):
        await controller.request_drop(6, "1.00", "abc")
        assert fake_authority.calls("reveal") == []

        await controller.wait_for_playback()
        await drain_background(controller)

        assert len(fake_authority.calls("reveal")) == 1
        assert controller.state == RoundState.RESULT_SHOWN

    @pytest.mark.asyncio
    async def test_background_reveal_failure_is_not_fatal(self, controller, fake_authority):
        fake_authority.responses["reveal"] = (500, "boom")

        await controller.request_drop(6, "1.00", "abc")
        await controller.wait_for_playback()
        await drain_background(controller)

        assert controller.state == RoundState.RESULT_SHOWN
        assert controller.game_result is not None

    @pytest.mark.asyncio
    async def test_state_events_published(self, controller, bus):
        states = []
        bus.subscribe(
            Events.ROUND_STATE_CHANGED, lambda e: states.append(e["data"]["new"]), weak=False
        )

        await controller.request_drop(6, "1.00", "abc")
        await controller.wait_for_playback()

        assert states == ["committing", "starting", "animating", "result_shown"]

    @pytest.mark.asyncio
    async def test_next_round_replaces_result(self, controller, fake_authority, start_payload):
        await controller.request_drop(6, "1.00", "abc")
        await controller.wait_for_playback()

        fake_authority.responses["commit"] = (200, {"roundId": "r2"})
        fake_authority.responses["start"] = (200, {**start_payload, "roundId": "r2"})
        second = await controller.request_drop(6, "2.00", "xyz")
        await controller.wait_for_playback()

        assert second.round_id == "r2"
        assert controller.game_result is second
        assert controller.state == RoundState.RESULT_SHOWN


class TestFailures:
    @pytest.mark.asyncio
    async def test_commit_failure_returns_to_idle(self, controller, bus, fake_authority):
        failures = []
        bus.subscribe(Events.ROUND_FAILED, failures.append, weak=False)
        fake_authority.responses["commit"] = (500, "down")

        with pytest.raises(CommitFailed):
            await controller.request_drop(6, "1.00", "abc")

        assert controller.state == RoundState.IDLE
        assert controller.game_result is None
        assert fake_authority.calls("start") == []
        assert failures[0]["data"]["kind"] == "CommitFailed"

    @pytest.mark.asyncio
    async def test_start_failure_returns_to_idle(self, controller, fake_authority):
        fake_authority.responses["start"] = (500, "nope")

        with pytest.raises(StartFailed):
            await controller.request_drop(6, "1.00", "abc")

        assert controller.state == RoundState.IDLE
        assert controller.game_result is None
        assert controller.round_id is None

    @pytest.mark.asyncio
    async def test_short_path_is_start_failure(self, controller, fake_authority, start_payload):
        short_path = start_payload["path"][:3]
        fake_authority.responses["start"] = (200, {**start_payload, "path": short_path})

        with pytest.raises(StartFailed):
            await controller.request_drop(6, "1.00", "abc")

        assert controller.state == RoundState.IDLE

    @pytest.mark.asyncio
    async def test_malformed_peg_map_is_start_failure(
        self, controller, fake_authority, start_payload
    ):
        fake_authority.responses["start"] = (200, {**start_payload, "pegMap": [1, 2, 3]})

        with pytest.raises(StartFailed):
            await controller.request_drop(6, "1.00", "abc")

        assert controller.state == RoundState.IDLE
        assert controller.is_busy is False

    @pytest.mark.asyncio
    async def test_undecodable_error_body_is_commit_failure(self, controller, fake_authority):
        fake_authority.responses["commit"] = (502, b"\xff\xfe gateway")

        with pytest.raises(CommitFailed):
            await controller.request_drop(6, "1.00", "abc")

        assert controller.state == RoundState.IDLE

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bet,column", [("12.3.4", 6), ("", 6), ("1.00", 13)])
    async def test_invalid_input_issues_no_requests(self, controller, fake_authority, bet, column):
        with pytest.raises(InvalidInput):
            await controller.request_drop(column, bet, "abc")

        assert fake_authority.requests == []
        assert controller.state == RoundState.IDLE

    @pytest.mark.asyncio
    async def test_failure_after_previous_round_clears_it(self, controller, fake_authority):
        await controller.request_drop(6, "1.00", "abc")
        await controller.wait_for_playback()

        fake_authority.responses["commit"] = (500, "down")
        with pytest.raises(CommitFailed):
            await controller.request_drop(6, "1.00", "abc")

        assert controller.game_result is None
        with pytest.raises(NoResultAvailable):
            await controller.request_verification()


class TestBusyAndTeardown:
    @pytest.mark.asyncio
    async def test_drop_rejected_while_committing(self, controller, fake_authority):
        fake_authority.delays["commit"] = 0.1

        first = asyncio.create_task(controller.request_drop(6, "1.00", "abc"))
        await wait_for_state(controller, RoundState.COMMITTING)

        assert await controller.request_drop(6, "1.00", "abc") is None
        await first
        assert len(fake_authority.calls("commit")) == 1

    @pytest.mark.asyncio
    async def test_drop_rejected_while_animating(self, authority_client, bus):
        from core import PathPlaybackEngine, RoundController

        engine = PathPlaybackEngine(lead_in=10, tick_interval=0, settle_delay=0, bus=bus)
        controller = RoundController(authority_client, engine=engine, bus=bus)
        try:
            await controller.request_drop(6, "1.00", "abc")
            assert controller.state == RoundState.ANIMATING

            assert await controller.request_drop(6, "1.00", "abc") is None
        finally:
            await controller.aclose()

    @pytest.mark.asyncio
    async def test_dispose_discards_late_commit(self, controller, fake_authority):
        fake_authority.delays["commit"] = 0.1

        task = asyncio.create_task(controller.request_drop(6, "1.00", "abc"))
        await wait_for_state(controller, RoundState.COMMITTING)
        controller.dispose()

        assert await task is None
        assert controller.state == RoundState.IDLE
        assert controller.game_result is None
        assert fake_authority.calls("start") == []

    @pytest.mark.asyncio
    async def test_dispose_cancels_playback(self, authority_client, bus):
        from core import PathPlaybackEngine, RoundController

        completed = []
        bus.subscribe(Events.ROUND_COMPLETED, completed.append, weak=False)
        engine = PathPlaybackEngine(lead_in=10, tick_interval=0, settle_delay=0, bus=bus)
        controller = RoundController(authority_client, engine=engine, bus=bus)

        await controller.request_drop(6, "1.00", "abc")
        await controller.aclose()

        assert controller.disposed
        assert engine.is_running() is False
        assert completed == []
        assert await controller.request_drop(6, "1.00", "abc") is None


class TestVerification:
    @pytest.mark.asyncio
    async def test_no_result_available(self, controller):
        with pytest.raises(NoResultAvailable):
            await controller.request_verification()

    @pytest.mark.asyncio
    async def test_verification_prepared(self, controller, bus):
        prepared = []
        bus.subscribe(Events.VERIFICATION_PREPARED, prepared.append, weak=False)
        await controller.request_drop(6, "1.00", "abc")
        await controller.wait_for_playback()

        record = await controller.request_verification()

        assert record.degraded is False
        assert record.inputs.server_seed == "s3cr3t"
        assert record.inputs.drop_column == "6"
        assert prepared[0]["data"] is record

    @pytest.mark.asyncio
    async def test_background_and_verification_reveals_agree(self, controller, fake_authority):
        fake_authority.delays["reveal"] = 0.05
        fake_authority.queued["reveal"] = [
            (200, {"serverSeed": "first-seed"}),
            (200, {"serverSeed": "second-seed"}),
        ]
        seen = []
        reveal = controller.client.reveal

        async def recording_reveal(round_id):
            answer = await reveal(round_id)
            seen.append(answer.server_seed)
            return answer

        controller.client.reveal = recording_reveal
        await controller.request_drop(6, "1.00", "abc")
        await controller.wait_for_playback()
        result = controller.game_result
        before = result.model_dump()

        background = list(controller._background)
        assert len(background) == 1
        _, record = await asyncio.gather(background[0], controller.request_verification())

        assert len(fake_authority.calls("reveal")) == 2
        assert len(seen) == 2
        assert seen[0] == seen[1]
        assert record.inputs.server_seed == seen[0]
        assert record.degraded is False
        assert controller.game_result is result
        assert controller.game_result.model_dump() == before


class TestTransportNormalization:
    @pytest.mark.asyncio
    async def test_unavailable_commit_chains_cause(self, instant_engine, bus):
        from unittest.mock import AsyncMock, Mock

        from core import RoundController
        from services.round_authority import AuthorityUnavailable

        client = Mock()
        client.commit = AsyncMock(side_effect=AuthorityUnavailable("timed out"))
        controller = RoundController(client, engine=instant_engine, bus=bus)

        with pytest.raises(CommitFailed) as exc_info:
            await controller.request_drop(6, "1.00", "abc")

        assert isinstance(exc_info.value.__cause__, AuthorityUnavailable)
        assert controller.state == RoundState.IDLE
        client.start.assert_not_called()
