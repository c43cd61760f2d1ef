"""
Round lifecycle errors

Every failure the controller, reconciler or verification form surfaces is one
of these. Transport errors from services.round_authority are chained as
__cause__.
"""


class PlinkoError(Exception):
    """Base class for all round lifecycle errors"""

    pass


class InvalidInput(PlinkoError):
    """Bet amount or drop column rejected before any network call"""

    pass


class CommitFailed(PlinkoError):
    """The authority did not commit a round"""

    pass


class StartFailed(PlinkoError):
    """The authority did not start the committed round (or sent a malformed result)"""

    pass


class RevealFailed(PlinkoError):
    """The server seed could not be revealed. Never fatal during reconciliation."""

    def __init__(self, message: str, status: int | None = None):
        self.status = status
        super().__init__(message)


class NoResultAvailable(PlinkoError):
    """Verification requested before any round finished"""

    pass


class NoRoundId(PlinkoError):
    """Reconciliation attempted on a result without a round id"""

    pass


class EmptyPath(PlinkoError):
    """Playback started with a path of zero steps"""

    pass


class IncompleteInput(PlinkoError):
    """Verify form submitted with empty fields"""

    def __init__(self, missing: list[str]):
        self.missing = list(missing)
        super().__init__(f"Missing required fields: {', '.join(self.missing)}")


class VerificationFailed(PlinkoError):
    """The verify query itself failed"""

    pass
