"""
Verification Models

VerificationInput is the user-editable form record; VerificationReport is the
authority's answer to a verify query, rendered verbatim.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from .round import PathStep

VERIFICATION_FIELDS = ("server_seed", "client_seed", "nonce", "drop_column")


class VerificationInput(BaseModel):
    """
    The four values a verify query needs.

    An empty server_seed means the seed is unresolved and must be entered
    manually. Instances are snapshots: editing one never touches the
    GameResult it was built from.
    """

    server_seed: str = Field(alias="serverSeed", default="")
    client_seed: str = Field(alias="clientSeed", default="")
    nonce: str = ""
    drop_column: str = Field(alias="dropColumn", default="")

    @field_validator("server_seed", "client_seed", "nonce", "drop_column", mode="before")
    @classmethod
    def _stringify(cls, v):
        if v is None:
            return ""
        if isinstance(v, (int, Decimal)) and not isinstance(v, bool):
            return str(v)
        return v

    def missing_fields(self) -> list[str]:
        """Names of fields that are empty or whitespace-only."""
        return [name for name in VERIFICATION_FIELDS if not getattr(self, name).strip()]

    @property
    def is_complete(self) -> bool:
        return not self.missing_fields()

    def to_query(self) -> dict[str, str]:
        """Query parameters for GET /api/verify"""
        return {
            "serverSeed": self.server_seed.strip(),
            "clientSeed": self.client_seed.strip(),
            "nonce": self.nonce.strip(),
            "dropColumn": self.drop_column.strip(),
        }

    class Config:
        """Pydantic model configuration."""

        populate_by_name = True
        validate_assignment = True


@dataclass(frozen=True)
class ReconciledVerification:
    """
    Result of reconciling a finished round with the authority's reveal.

    Fields:
        round_id: Round the record belongs to
        inputs: Snapshot of the verification fields
        degraded: True when the server seed could not be obtained
        notice: User-facing warning for degraded records
        reveal_status: HTTP status of a failed reveal, if one was received
    """

    round_id: str
    inputs: VerificationInput
    degraded: bool = False
    notice: str | None = None
    reveal_status: int | None = None


class VerificationReport(BaseModel):
    """Body of a verify response. Displayed as-is, never recomputed."""

    commit_hex: str | None = Field(alias="commitHex", default=None)
    combined_seed: str | None = Field(alias="combinedSeed", default=None)
    peg_map_hash: str | None = Field(alias="pegMapHash", default=None)
    bin_index: int | None = Field(alias="binIndex", default=None)
    payout_multiplier: Decimal | None = Field(alias="payoutMultiplier", default=None)
    path: tuple[PathStep, ...] = ()

    @field_validator("payout_multiplier", mode="before")
    @classmethod
    def _coerce_multiplier(cls, v):
        if isinstance(v, float):
            return Decimal(str(v))
        return v

    @field_validator("path", mode="before")
    @classmethod
    def _coerce_path(cls, v):
        return () if v is None else v

    @property
    def verified(self) -> bool:
        """The authority reproduced the round when it reports a bin."""
        return self.bin_index is not None

    def replay_lines(self) -> list[str]:
        """Step-by-step path replay, one line per row."""
        return [
            f"Row {step.row}: Column {step.column} → {step.direction.value}" for step in self.path
        ]

    class Config:
        """Pydantic model configuration."""

        frozen = True
        populate_by_name = True
        extra = "ignore"
