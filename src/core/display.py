"""
Text rendering for the terminal host

Builds the round result summary and a coarse character view of the board.
"""

from models import BallPosition, BoardGeometry, GameResult
from utils import format_cents, format_multiplier

CELL_WIDTH = 3


def summarize_result(result: GameResult) -> list[tuple[str, str]]:
    """Label/value pairs shown once the ball has landed."""
    return [
        ("Landed in Bin", str(result.bin_index)),
        ("Multiplier", format_multiplier(result.payout_multiplier)),
        ("Bet Amount", format_cents(result.bet_cents)),
        ("Win Amount", format_cents(result.win_amount)),
    ]


def render_summary(result: GameResult) -> str:
    width = max(len(label) for label, _ in summarize_result(result)) + 1
    lines = [f"{label + ':':<{width}} {value}" for label, value in summarize_result(result)]
    lines.append("You won!" if result.is_win else "Better luck next round.")
    return "\n".join(lines)


def render_ball(position: BallPosition, geometry: BoardGeometry) -> str:
    """One line showing where the ball sits across the board's columns."""
    column = round(position.x / geometry.width * geometry.rows)
    cells = ["."] * (geometry.rows + 1)
    cells[max(0, min(geometry.rows, column))] = "o"
    row = round(position.y / geometry.row_height) - 1
    label = "bin" if position.y >= geometry.bin_y else f"r{row:02d}"
    return f"{label:>4} " + "".join(cell.center(CELL_WIDTH) for cell in cells)


def render_drop_zone(drop_column: int, geometry: BoardGeometry) -> str:
    """Header line marking the selected drop column."""
    cells = ["v" if column == drop_column else " " for column in range(geometry.rows + 1)]
    return "     " + "".join(cell.center(CELL_WIDTH) for cell in cells)
