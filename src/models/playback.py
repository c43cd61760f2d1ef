"""
Playback data models
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class BallPosition:
    """Ball centre in board units (origin top-left)."""

    x: float
    y: float


@dataclass(frozen=True)
class BoardGeometry:
    """
    Fixed board layout used to place the ball.

    Attributes:
        rows: Number of peg rows (one path step per row)
        width: Board width in canvas units
        height: Board height in canvas units
        bin_offset: Distance of the terminal bin position above the bottom edge
    """

    rows: int = 12
    width: float = 600
    height: float = 500
    bin_offset: float = 20

    @property
    def row_height(self) -> float:
        return self.height / (self.rows + 2)

    def column_x(self, column: int) -> float:
        return (column / self.rows) * self.width

    def row_y(self, row: int) -> float:
        return (row + 1) * self.row_height

    @property
    def bin_y(self) -> float:
        return self.height - self.bin_offset

    @classmethod
    def from_config(cls, board: dict[str, Any]) -> "BoardGeometry":
        return cls(
            rows=board["rows"],
            width=board["width"],
            height=board["height"],
            bin_offset=board["bin_offset"],
        )


@dataclass
class PlaybackState:
    """
    Transient animation state, reset at the start of every run.

    current_step_index is -1 before the first emission and equals the path
    length once the terminal bin position has been emitted.
    """

    current_step_index: int = -1
    ball_position: BallPosition = field(default_factory=lambda: BallPosition(0.0, 0.0))
    animating: bool = False

    def reset(self, start: BallPosition) -> None:
        self.current_step_index = -1
        self.ball_position = start
        self.animating = False
