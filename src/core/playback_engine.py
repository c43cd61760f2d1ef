"""
Path Playback Engine

Turns the authority's ordered path into a timed sequence of ball positions.
Pure presentation: the outcome is already fixed by the GameResult.

Timeline for an N-step path:
    reset to drop position → lead_in → step 0 → tick → ... → step N-1
    → tick → terminal bin → settle_delay → on_complete()

Classes:
    PlaybackHandle: Cancellable handle for one run
    PathPlaybackEngine: Schedules runs, at most one live at a time
"""

import asyncio
import itertools
import logging
from collections.abc import Callable, Sequence

from config import config
from core.errors import EmptyPath
from models import BallPosition, BoardGeometry, PathStep, PlaybackState
from services import Events, event_bus as default_event_bus
from services.event_bus import EventBus

logger = logging.getLogger(__name__)

PositionCallback = Callable[[int, BallPosition], None]


def start_position(drop_column: int, geometry: BoardGeometry) -> BallPosition:
    """Ball position above the board before the first step."""
    return BallPosition(geometry.column_x(drop_column), 0.0)


def ball_positions(path: Sequence[PathStep], geometry: BoardGeometry) -> list[BallPosition]:
    """
    Every position a run emits, in order: one per step, then the terminal bin.

    A pure function of path and geometry, so identical inputs always animate
    identically.

    Raises:
        EmptyPath: If path has no steps
    """
    if not path:
        raise EmptyPath("Cannot animate an empty path")

    positions = [
        BallPosition(geometry.column_x(step.column), geometry.row_y(step.row)) for step in path
    ]
    positions.append(BallPosition(geometry.column_x(path[-1].column), geometry.bin_y))
    return positions


class PlaybackHandle:
    """
    Handle for one scheduled playback run.

    cancel() discards the remaining emissions; a cancelled run never calls
    its on_complete.
    """

    def __init__(self, run_id: int, task: asyncio.Task, positions: list[BallPosition]):
        self.run_id = run_id
        self.positions = positions
        self._task = task

    def cancel(self) -> bool:
        """Stop the run. Returns False if it had already finished."""
        if self._task.done():
            return False
        self._task.cancel()
        return True

    def done(self) -> bool:
        return self._task.done()

    @property
    def cancelled(self) -> bool:
        return self._task.cancelled()

    async def wait(self) -> None:
        """Wait for the run to finish or be cancelled, without raising."""
        await asyncio.gather(self._task, return_exceptions=True)


class PathPlaybackEngine:
    """
    Timed sequencer for ball positions.

    Must be started from inside a running event loop. Starting a new run
    cancels the previous one first.

    Usage:
        engine = PathPlaybackEngine(on_position=lambda i, pos: draw(pos))
        handle = engine.start(result.path, drop_column=6, on_complete=done)
        ...
        handle.cancel()
    """

    def __init__(
        self,
        geometry: BoardGeometry | None = None,
        lead_in: float | None = None,
        tick_interval: float | None = None,
        settle_delay: float | None = None,
        on_position: PositionCallback | None = None,
        bus: EventBus | None = None,
    ):
        """
        Initialize playback engine.

        Args:
            geometry: Board layout (default: config BOARD section)
            lead_in: Seconds before the first step (default: config PLAYBACK)
            tick_interval: Seconds between emissions (default: config PLAYBACK)
            settle_delay: Seconds between the terminal position and on_complete
            on_position: Called with (index, position) for every emission
            bus: Event bus for PLAYBACK_* events
        """
        playback = config.section("playback")
        self.geometry = geometry or BoardGeometry.from_config(config.section("board"))
        self.lead_in = playback["lead_in"] if lead_in is None else lead_in
        self.tick_interval = playback["tick_interval"] if tick_interval is None else tick_interval
        self.settle_delay = playback["settle_delay"] if settle_delay is None else settle_delay
        self.on_position = on_position
        self.bus = bus or default_event_bus

        self.state = PlaybackState()
        self._run_ids = itertools.count(1)
        self._current: PlaybackHandle | None = None

    @property
    def current_handle(self) -> PlaybackHandle | None:
        return self._current

    def is_running(self) -> bool:
        return self._current is not None and not self._current.done()

    def start(
        self,
        path: Sequence[PathStep],
        drop_column: int,
        on_complete: Callable[[], None],
    ) -> PlaybackHandle:
        """
        Schedule a run for path.

        Args:
            path: Ordered steps from the GameResult
            drop_column: Column the ball is dropped from
            on_complete: Called exactly once after the settle delay, unless cancelled

        Returns:
            PlaybackHandle for the new run

        Raises:
            EmptyPath: If path has no steps
        """
        positions = ball_positions(path, self.geometry)

        self.cancel()

        run_id = next(self._run_ids)
        self.state.reset(start_position(drop_column, self.geometry))
        self.state.animating = True

        task = asyncio.get_running_loop().create_task(
            self._run(run_id, positions, on_complete), name=f"plinko-playback-{run_id}"
        )
        self._current = PlaybackHandle(run_id, task, positions)

        self.bus.publish(
            Events.PLAYBACK_STARTED,
            {"run_id": run_id, "steps": len(path), "drop_column": drop_column},
        )
        logger.debug(f"Playback run {run_id} scheduled ({len(path)} steps)")
        return self._current

    def cancel(self) -> None:
        """Cancel the live run, if any."""
        if self._current is not None and self._current.cancel():
            logger.debug(f"Playback run {self._current.run_id} cancelled")
        self.state.animating = False

    def _is_current(self, run_id: int) -> bool:
        return self._current is not None and self._current.run_id == run_id

    def _emit(self, run_id: int, index: int, position: BallPosition, terminal: bool) -> None:
        self.state.current_step_index = index
        self.state.ball_position = position

        if self.on_position:
            try:
                self.on_position(index, position)
            except Exception as e:
                logger.error(f"Error in position callback: {e}", exc_info=True)

        if not self.bus.has_subscribers(Events.PLAYBACK_STEP):
            return
        self.bus.publish(
            Events.PLAYBACK_STEP,
            {
                "run_id": run_id,
                "index": index,
                "x": position.x,
                "y": position.y,
                "terminal": terminal,
            },
        )

    async def _run(
        self,
        run_id: int,
        positions: list[BallPosition],
        on_complete: Callable[[], None],
    ) -> None:
        """Emit positions at the configured cadence, then complete."""
        terminal_index = len(positions) - 1
        try:
            await asyncio.sleep(self.lead_in)

            for index, position in enumerate(positions):
                if index > 0:
                    await asyncio.sleep(self.tick_interval)
                self._emit(run_id, index, position, terminal=index == terminal_index)

            await asyncio.sleep(self.settle_delay)
        except asyncio.CancelledError:
            self.bus.publish(Events.PLAYBACK_CANCELLED, {"run_id": run_id})
            raise

        if not self._is_current(run_id):
            # Superseded between the last sleep and now
            return

        self.state.animating = False
        self.bus.publish(Events.PLAYBACK_COMPLETE, {"run_id": run_id})
        logger.debug(f"Playback run {run_id} complete")

        try:
            on_complete()
        except Exception as e:
            logger.error(f"Error in playback completion callback: {e}", exc_info=True)
