"""
Verification Form

Holds the four editable verification fields, validates them, queries the
authority and keeps its answer for display. Nothing is recomputed locally:
success simply means the authority reported a bin index.

The form subscribes to VERIFICATION_PREPARED and fills itself in from the
record the round controller publishes; it never reads controller state.
"""

import logging

from core.errors import IncompleteInput, VerificationFailed
from models import ReconciledVerification, VerificationInput, VerificationReport
from services import Events, event_bus as default_event_bus
from services.event_bus import EventBus
from services.round_authority import AuthorityError, AuthorityHTTPError, RoundAuthorityClient
from utils import format_multiplier

logger = logging.getLogger(__name__)

SERVER_SEED_HINT = (
    "How to get Server Seed:\n"
    '  Automatic: use "Verify This Round" after playing\n'
    "  Manual: call POST /api/rounds/{roundId}/reveal to get the server seed"
)

FIELD_LABELS = {
    "server_seed": "Server Seed",
    "client_seed": "Client Seed",
    "nonce": "Nonce",
    "drop_column": "Drop Column",
}


class VerificationForm:
    """
    State behind the verifier view.

    Usage:
        form = VerificationForm(client)
        form.attach()                     # auto-fill from VERIFICATION_PREPARED
        form.set_field("server_seed", "...")
        report = await form.submit()
        print("\\n".join(form.render_report()))
    """

    def __init__(self, client: RoundAuthorityClient, bus: EventBus | None = None):
        self.client = client
        self.bus = bus or default_event_bus

        self.inputs = VerificationInput()
        self.round_id: str | None = None
        self.degraded = False
        self.notice: str | None = None
        self.autofilled = False
        self.report: VerificationReport | None = None
        self.error: str | None = None
        self.is_loading = False

    # ========================================================================
    # SUBSCRIPTION
    # ========================================================================

    def attach(self) -> None:
        """Start receiving prepared verification records."""
        self.bus.subscribe(Events.VERIFICATION_PREPARED, self._on_verification_prepared)

    def detach(self) -> None:
        self.bus.unsubscribe(Events.VERIFICATION_PREPARED, self._on_verification_prepared)

    def _on_verification_prepared(self, event: dict) -> None:
        record = event["data"]
        if isinstance(record, ReconciledVerification):
            self.load(record)

    def load(self, record: ReconciledVerification) -> None:
        """Fill the form from a reconciled record, clearing any previous result."""
        # Copy so edits here never reach the publisher's snapshot
        self.inputs = record.inputs.model_copy()
        self.round_id = record.round_id
        self.degraded = record.degraded
        self.notice = record.notice
        self.autofilled = True
        self.report = None
        self.error = None
        logger.info(
            f"Verification form filled for round {record.round_id}"
            + (" (server seed missing)" if record.degraded else "")
        )

    # ========================================================================
    # EDITING
    # ========================================================================

    def set_field(self, name: str, value: str) -> None:
        """
        Update one field.

        Raises:
            KeyError: If name is not a verification field
        """
        if name not in FIELD_LABELS:
            raise KeyError(name)
        setattr(self.inputs, name, value)
        self.autofilled = False

    @property
    def server_seed_hint(self) -> str | None:
        """Help text shown while the server seed is empty."""
        return None if self.inputs.server_seed.strip() else SERVER_SEED_HINT

    def validate(self) -> None:
        """
        Raises:
            IncompleteInput: If any field is empty
        """
        missing = self.inputs.missing_fields()
        if missing:
            raise IncompleteInput(missing)

    # ========================================================================
    # SUBMISSION
    # ========================================================================

    async def submit(self) -> VerificationReport:
        """
        Ask the authority to verify the current inputs.

        Returns:
            The authority's report (also kept on self.report)

        Raises:
            IncompleteInput: If any field is empty (no request issued)
            VerificationFailed: If the verify query fails
        """
        self.validate()

        self.is_loading = True
        self.error = None
        self.report = None
        try:
            report = await self.client.verify(self.inputs.to_query())
        except AuthorityError as e:
            if isinstance(e, AuthorityHTTPError):
                message = f"Verification failed (HTTP {e.status})"
            else:
                message = f"Verification failed: {e}"
            self.error = message
            self.bus.publish(
                Events.VERIFICATION_FAILED, {"round_id": self.round_id, "error": message}
            )
            raise VerificationFailed(message) from e
        finally:
            self.is_loading = False

        self.report = report
        event = Events.VERIFICATION_SUCCEEDED if report.verified else Events.VERIFICATION_FAILED
        self.bus.publish(event, {"round_id": self.round_id, "bin_index": report.bin_index})
        logger.info(
            f"Verification {'succeeded' if report.verified else 'returned no bin'}"
            f" for round {self.round_id or '(manual)'}"
        )
        return report

    # ========================================================================
    # DISPLAY
    # ========================================================================

    def render_report(self) -> list[str]:
        """Lines describing the last report, verbatim from the authority."""
        report = self.report
        if report is None:
            return [f"Error: {self.error}"] if self.error else []

        multiplier = report.payout_multiplier
        lines = [
            "Verification Result",
            f"Commit Hash: {report.commit_hex or ''}",
            f"Combined Seed: {report.combined_seed or ''}",
            f"Peg Map Hash: {report.peg_map_hash or ''}",
            f"Final Bin: {'' if report.bin_index is None else report.bin_index}",
            f"Payout Multiplier: {'' if multiplier is None else format_multiplier(multiplier)}",
        ]
        if report.path:
            lines.append("Ball Path Replay")
            lines.extend(f"  {line}" for line in report.replay_lines())
        lines.append("Verification Successful" if report.verified else "Verification Failed")
        return lines
