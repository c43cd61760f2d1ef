"""
Verification Reconciler

Builds the verification record for a finished round. It asks the authority to
reveal the server seed and always produces a record: when the reveal fails
the record is degraded (empty server seed) and carries a notice asking the
user to enter the seed manually.
"""

import logging

from core.errors import NoRoundId, RevealFailed
from models import GameResult, ReconciledVerification, RevealResponse, VerificationInput
from services import Events, event_bus as default_event_bus
from services.event_bus import EventBus
from services.round_authority import AuthorityError, AuthorityHTTPError, RoundAuthorityClient

logger = logging.getLogger(__name__)

TRANSPORT_FAILURE_NOTICE = (
    "Failed to auto-fill server seed. Please enter it manually after revealing the round."
)


def http_failure_notice(status: int, body: str) -> str:
    return (
        f"Server seed reveal failed ({status}): {body}. "
        "Please try again or enter the server seed manually."
    )


def _drop_column_text(result: GameResult) -> str:
    return "" if result.drop_column is None else str(result.drop_column)


class VerificationReconciler:
    """
    Reconciles a GameResult with the authority's reveal.

    reconcile() only raises NoRoundId; every reveal failure is folded into a
    degraded record. The GameResult is read, never modified.
    """

    def __init__(self, client: RoundAuthorityClient, bus: EventBus | None = None):
        self.client = client
        self.bus = bus or default_event_bus

    async def reveal(self, round_id: str) -> RevealResponse:
        """
        Reveal the server seed for round_id.

        Raises:
            RevealFailed: On any authority or transport failure
        """
        try:
            return await self.client.reveal(round_id)
        except AuthorityHTTPError as e:
            raise RevealFailed(http_failure_notice(e.status, e.body), status=e.status) from e
        except AuthorityError as e:
            raise RevealFailed(str(e)) from e

    async def reconcile(self, result: GameResult) -> ReconciledVerification:
        """
        Build the verification record for result.

        Args:
            result: Snapshot of the finished round

        Returns:
            ReconciledVerification, degraded when the reveal failed

        Raises:
            NoRoundId: If result has no round id
        """
        if result is None or not result.round_id:
            raise NoRoundId("Cannot reconcile a result without a round id")

        round_id = result.round_id
        logger.info(f"Reconciling verification data for round {round_id}")

        try:
            reveal = await self.reveal(round_id)
        except RevealFailed as e:
            record = self._degraded(result, e)
            self.bus.publish(
                Events.REVEAL_FAILED,
                {"round_id": round_id, "status": e.status, "error": str(e)},
            )
            logger.warning(f"Verification data for round {round_id} is degraded: {e}")
            return record

        client_seed = reveal.client_seed if reveal.client_seed is not None else result.client_seed
        nonce = reveal.nonce if reveal.nonce is not None else result.nonce
        inputs = VerificationInput(
            server_seed=reveal.server_seed,
            client_seed=client_seed,
            nonce=nonce,
            drop_column=_drop_column_text(result),
        )
        self.bus.publish(Events.REVEAL_COMPLETED, {"round_id": round_id})
        return ReconciledVerification(round_id=round_id, inputs=inputs, degraded=False)

    def _degraded(self, result: GameResult, error: RevealFailed) -> ReconciledVerification:
        inputs = VerificationInput(
            server_seed="",
            client_seed=result.client_seed,
            nonce=result.nonce,
            drop_column=_drop_column_text(result),
        )
        notice = str(error) if error.status is not None else TRANSPORT_FAILURE_NOTICE
        return ReconciledVerification(
            round_id=result.round_id,
            inputs=inputs,
            degraded=True,
            notice=notice,
            reveal_status=error.status,
        )
