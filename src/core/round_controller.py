"""
Round Controller

Drives one client's rounds: commit → start → animate → reveal, and hands the
finished result to verification.

Responsibilities:
- Reject drops while a round is in flight
- Normalize authority failures into CommitFailed / StartFailed
- Own the current GameResult (replaced wholesale each round)
- Publish ROUND_COMPLETED with the immutable result when playback ends
- Fire-and-forget reveal after playback
- Teardown: cancel timers and background work, drop late responses
"""

import asyncio
import logging

from core.errors import CommitFailed, NoResultAvailable, StartFailed
from core.playback_engine import PathPlaybackEngine, PlaybackHandle
from core.round_state_machine import RoundStateMachine
from core.validators import parse_bet_cents, validate_drop_column, validate_game_result
from core.verification import VerificationReconciler
from models import GameResult, ReconciledVerification, Round, RoundState
from services import Events, event_bus as default_event_bus
from services.event_bus import EventBus
from services.logger import bind_round
from services.round_authority import AuthorityError, RoundAuthorityClient

logger = logging.getLogger(__name__)


class RoundController:
    """
    Round lifecycle controller.

    Usage:
        controller = RoundController(client)
        result = await controller.request_drop(6, "1.00", "my-seed")
        await controller.wait_for_playback()
        record = await controller.request_verification()
        controller.dispose()
    """

    def __init__(
        self,
        client: RoundAuthorityClient,
        engine: PathPlaybackEngine | None = None,
        reconciler: VerificationReconciler | None = None,
        bus: EventBus | None = None,
    ):
        """
        Initialize round controller.

        Args:
            client: Round authority client (not owned, never closed here)
            engine: Playback engine (default: one built from config)
            reconciler: Verification reconciler (default: one sharing client)
            bus: Event bus for round events
        """
        self.client = client
        self.bus = bus or default_event_bus
        self.engine = engine or PathPlaybackEngine(bus=self.bus)
        self.reconciler = reconciler or VerificationReconciler(client, bus=self.bus)

        self._state_machine = RoundStateMachine()
        self._state_machine.on_state_change = self._on_state_change

        self._game_result: GameResult | None = None
        self._round_id: str | None = None
        self._playback: PlaybackHandle | None = None
        self._background: set[asyncio.Task] = set()
        self._disposed = False

    # ========================================================================
    # PROPERTIES
    # ========================================================================

    @property
    def state(self) -> RoundState:
        return self._state_machine.state

    @property
    def game_result(self) -> GameResult | None:
        """Result of the current round; None until start succeeds."""
        return self._game_result

    @property
    def round_id(self) -> str | None:
        return self._round_id

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def is_busy(self) -> bool:
        return self._state_machine.is_busy()

    def _on_state_change(self, old: RoundState, new: RoundState) -> None:
        self.bus.publish(
            Events.ROUND_STATE_CHANGED,
            {"old": old.value, "new": new.value, "round_id": self._round_id},
        )

    # ========================================================================
    # DROP
    # ========================================================================

    async def request_drop(
        self, drop_column: int, bet_amount_text: str, client_seed: str
    ) -> GameResult | None:
        """
        Play a round: commit, start, then hand the path to the playback engine.

        Returns once animation has been scheduled; completion is signalled
        through on_playback_complete().

        Args:
            drop_column: Column 0-12 to drop the ball from
            bet_amount_text: Bet in dollars as typed, e.g. "1.00"
            client_seed: Player-chosen seed

        Returns:
            The new GameResult, or None if the drop was ignored (busy or disposed)

        Raises:
            InvalidInput: Bad bet amount or column (no network call issued)
            CommitFailed: Commit did not succeed; state is back to IDLE
            StartFailed: Start did not succeed; state is back to IDLE
        """
        if self._disposed:
            logger.warning("Drop requested on a disposed controller, ignoring")
            return None

        if self._state_machine.is_busy():
            logger.info(f"Drop ignored while {self.state.value}")
            return None

        bet_cents = parse_bet_cents(bet_amount_text)
        drop_column = validate_drop_column(drop_column)

        # A new commit discards the previous round entirely
        self._cancel_playback()
        self._game_result = None
        self._round_id = None
        self._state_machine.begin_commit()

        try:
            commit = await self.client.commit()
        except AuthorityError as e:
            if self._disposed:
                return None
            raise self._fail(CommitFailed(f"Failed to create round commitment: {e}")) from e

        if self._disposed:
            logger.debug("Discarding commit response after teardown")
            return None

        self._round_id = commit.round_id
        bind_round(commit.round_id)
        self.bus.publish(Events.ROUND_COMMITTED, {"round_id": commit.round_id})

        round_ = Round(
            round_id=commit.round_id,
            client_seed=client_seed,
            bet_cents=bet_cents,
            drop_column=drop_column,
        )
        self._state_machine.begin_start()

        try:
            result = await self.client.start(round_)
            if result.drop_column is None:
                result = result.model_copy(update={"drop_column": drop_column})
            validate_game_result(result, rows=self.engine.geometry.rows)
        except AuthorityError as e:
            if self._disposed:
                return None
            raise self._fail(StartFailed(f"Failed to start round {round_.round_id}: {e}")) from e
        except StartFailed as e:
            if self._disposed:
                return None
            raise self._fail(e)

        if self._disposed:
            logger.debug("Discarding start response after teardown")
            return None

        self._game_result = result
        self._state_machine.begin_animation()
        self.bus.publish(Events.ROUND_STARTED, {"round_id": result.round_id, "result": result})
        logger.info(
            f"Round {result.round_id} started: bin {result.bin_index}, "
            f"{result.payout_multiplier}x, win {result.win_amount} cents"
        )

        self._playback = self.engine.start(result.path, drop_column, self.on_playback_complete)
        return result

    def _fail(self, error: Exception) -> Exception:
        """Return to IDLE with no partial round retained; returns error for raising."""
        self._game_result = None
        self._round_id = None
        self._state_machine.fail(str(error))
        bind_round(None)
        self.bus.publish(
            Events.ROUND_FAILED, {"kind": type(error).__name__, "error": str(error)}
        )
        return error

    # ========================================================================
    # PLAYBACK COMPLETION
    # ========================================================================

    def on_playback_complete(self) -> None:
        """
        Show the result and reveal the round in the background.

        The background reveal is non-blocking: its outcome is only logged and
        never changes controller state.
        """
        if self._disposed or self._game_result is None:
            return
        if self.state != RoundState.ANIMATING:
            logger.debug(f"Playback completion ignored in {self.state.value} state")
            return

        result = self._game_result
        self._playback = None
        self._state_machine.show_result()
        self.bus.publish(Events.ROUND_COMPLETED, result)

        self._spawn(self._background_reveal(result.round_id), f"plinko-reveal-{result.round_id}")

    def _spawn(self, coro, name: str) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _background_reveal(self, round_id: str) -> None:
        try:
            await self.client.reveal(round_id)
            logger.debug(f"Background reveal for round {round_id} succeeded")
        except AuthorityError as e:
            logger.warning(f"Background reveal for round {round_id} failed: {e}")

    async def wait_for_playback(self) -> None:
        """Wait until the current animation finishes or is cancelled."""
        if self._playback is not None:
            await self._playback.wait()

    # ========================================================================
    # VERIFICATION
    # ========================================================================

    async def request_verification(self) -> ReconciledVerification:
        """
        Build verification data for the current round.

        Publishes VERIFICATION_PREPARED with the record so verification views
        can fill themselves in.

        Raises:
            NoResultAvailable: If no round has started since the last commit
        """
        result = self._game_result
        if result is None:
            raise NoResultAvailable("No game result available. Please play a round first.")

        record = await self.reconciler.reconcile(result)
        if self._disposed:
            logger.debug("Verification finished after teardown")
            return record

        self.bus.publish(Events.VERIFICATION_PREPARED, record)
        return record

    # ========================================================================
    # TEARDOWN
    # ========================================================================

    def _cancel_playback(self) -> None:
        if self._playback is not None:
            self._playback.cancel()
            self._playback = None

    def dispose(self) -> None:
        """
        Tear down: clear pending timers and background tasks.

        Responses that arrive afterwards are discarded without touching state.
        """
        if self._disposed:
            return
        self._disposed = True
        self._cancel_playback()
        self.engine.cancel()
        for task in list(self._background):
            task.cancel()
        self._state_machine.reset()
        logger.info("Round controller disposed")

    async def aclose(self) -> None:
        """dispose() and wait for the cancelled playback and background tasks to unwind."""
        playback = self._playback
        pending = list(self._background)
        self.dispose()
        if playback is not None:
            await playback.wait()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
