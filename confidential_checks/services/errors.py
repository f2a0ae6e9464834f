"""
Error taxonomy for the confidential check lifecycle.

Every failure the lifecycle can surface is a subclass of CheckServiceError so
the presentation layer can map it to a user-visible status message and an
HTTP status code in one place.
"""


class CheckServiceError(Exception):
    """Base exception for check lifecycle errors."""

    error_code = "check_error"

    def __init__(self, message: str, error_code: str | None = None, details: dict | None = None):
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        self.details = details or {}


class NotAuthenticated(CheckServiceError):
    """Mutating operation attempted without a connected account."""

    error_code = "not_authenticated"


class EncryptionFailure(CheckServiceError):
    """The relayer could not encrypt the value (error, bad input or timeout)."""

    error_code = "encryption_failed"


class DecryptionFailure(CheckServiceError):
    """Proof generation or verification of a decryption failed."""

    error_code = "decryption_failed"


class SubmissionFailure(CheckServiceError):
    """The ledger rejected a transaction or could not be reached."""

    error_code = "submission_failed"


class RejectedByUser(SubmissionFailure):
    """The signer declined to sign the transaction."""

    error_code = "rejected_by_user"


class AlreadyVerified(CheckServiceError):
    """
    The record's score was already disclosed on the ledger.

    Recoverable: callers convert this into the success path.
    """

    error_code = "already_verified"


class NotFound(CheckServiceError):
    """No record exists for the requested candidate id."""

    error_code = "not_found"


class LedgerReadError(CheckServiceError):
    """A ledger read failed or returned data that is not a valid record."""

    error_code = "ledger_read_failed"
