"""
Round Models - wire shapes exchanged with the round authority

Field names are snake_case in Python and camelCase on the wire; every model
accepts either spelling.
"""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from .enums import Direction

BOARD_ROWS = 12
MAX_COLUMN = 12


def _coerce_decimal(v):
    if isinstance(v, float):
        return Decimal(str(v))
    return v


def _coerce_text(v):
    if v is None or isinstance(v, str):
        return v
    if isinstance(v, bool):
        raise ValueError("expected a string or number")
    return str(v)


class PathStep(BaseModel):
    """One row of the ball's descent."""

    row: int = Field(ge=0)
    column: int = Field(ge=0, le=MAX_COLUMN)
    direction: Direction

    @field_validator("direction", mode="before")
    @classmethod
    def _normalize_direction(cls, v):
        if isinstance(v, str):
            return v.upper()
        return v

    class Config:
        """Pydantic model configuration."""

        frozen = True
        extra = "ignore"


class Round(BaseModel):
    """Client-chosen parameters of one play, bound to a committed round id."""

    round_id: str = Field(alias="roundId", min_length=1)
    client_seed: str = Field(alias="clientSeed")
    bet_cents: int = Field(alias="betCents", ge=0)
    drop_column: int = Field(alias="dropColumn", ge=0, le=MAX_COLUMN)

    def start_payload(self) -> dict:
        """JSON body for POST /api/rounds/{roundId}/start"""
        return {
            "clientSeed": self.client_seed,
            "betCents": self.bet_cents,
            "dropColumn": self.drop_column,
        }

    class Config:
        """Pydantic model configuration."""

        frozen = True
        populate_by_name = True


class CommitResponse(BaseModel):
    """Body of a successful commit."""

    round_id: str = Field(alias="roundId", min_length=1)

    @field_validator("round_id", mode="before")
    @classmethod
    def _coerce_round_id(cls, v):
        return _coerce_text(v)

    class Config:
        """Pydantic model configuration."""

        populate_by_name = True
        extra = "ignore"


class GameResult(BaseModel):
    """
    Outcome of a started round, as computed by the authority.

    Immutable: the controller replaces it wholesale on the next round, and
    every consumer holds the same snapshot.
    """

    round_id: str = Field(alias="roundId")
    peg_map: tuple[tuple[Decimal, ...], ...] = Field(alias="pegMap", default=())
    path: tuple[PathStep, ...]
    bin_index: int = Field(alias="binIndex")
    payout_multiplier: Decimal = Field(alias="payoutMultiplier", ge=0)
    bet_cents: int = Field(alias="betCents", ge=0)
    win_amount: int = Field(alias="winAmount", ge=0)
    client_seed: str = Field(alias="clientSeed", default="")
    nonce: str = ""
    drop_column: int | None = Field(alias="dropColumn", default=None, ge=0, le=MAX_COLUMN)

    @field_validator("payout_multiplier", mode="before")
    @classmethod
    def _coerce_multiplier(cls, v):
        return _coerce_decimal(v)

    @field_validator("peg_map", mode="before")
    @classmethod
    def _coerce_peg_map(cls, v):
        if v is None:
            return ()
        if not isinstance(v, (list, tuple)):
            raise ValueError("pegMap must be a list of rows")
        if not all(isinstance(row, (list, tuple)) for row in v):
            raise ValueError("every pegMap row must be a list")
        return [[_coerce_decimal(bias) for bias in row] for row in v]

    @field_validator("round_id", "nonce", mode="before")
    @classmethod
    def _coerce_identifiers(cls, v):
        return _coerce_text(v)

    @property
    def is_win(self) -> bool:
        """True when the payout exceeds the stake."""
        return self.win_amount > self.bet_cents

    @property
    def final_column(self) -> int | None:
        """Column of the last path step (None for an empty path)."""
        return self.path[-1].column if self.path else None

    class Config:
        """Pydantic model configuration."""

        frozen = True
        populate_by_name = True
        extra = "ignore"


class RevealResponse(BaseModel):
    """Body of a successful reveal. Missing fields fall back to the GameResult."""

    server_seed: str = Field(alias="serverSeed", default="")
    client_seed: str | None = Field(alias="clientSeed", default=None)
    nonce: str | None = None

    @field_validator("server_seed", mode="before")
    @classmethod
    def _coerce_server_seed(cls, v):
        return "" if v is None else _coerce_text(v)

    @field_validator("client_seed", "nonce", mode="before")
    @classmethod
    def _coerce_optional(cls, v):
        return _coerce_text(v)

    class Config:
        """Pydantic model configuration."""

        frozen = True
        populate_by_name = True
        extra = "ignore"
