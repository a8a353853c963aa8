"""trustbadge.errors — Exception taxonomy for the badge engine.

Verification failures are NOT exceptions: an expired, revoked or forged badge
is a normal VerificationResult. Only malformed caller input, bad key material
and store faults are raised.
"""


class TrustBadgeError(Exception):
    """Base class for all trustbadge errors."""


class ValidationError(TrustBadgeError):
    """Caller input is malformed. Maps to a 4xx response."""

    def __init__(self, message: str, reason: str = "validation_error"):
        self.reason = reason
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error": self.reason, "message": self.message}


class NoAnchorsError(ValidationError):
    """Raised when issuing a badge for a subject with no identity anchors."""

    def __init__(self, subject_id: str = ""):
        self.subject_id = subject_id
        super().__init__(
            "Cannot generate badge: no identity anchors connected",
            reason="no_anchors",
        )


class KeyConfigError(TrustBadgeError):
    """Signing key material is missing, malformed or inconsistent."""


class StoreError(TrustBadgeError):
    """Persistence layer could not answer. The caller gets no result."""


class StoreUnavailableError(StoreError):
    """Store is unreachable or not connected."""


class StoreTimeoutError(StoreError):
    """Store call exceeded its time budget."""

    def __init__(self, operation: str, timeout: float):
        self.operation = operation
        self.timeout = timeout
        super().__init__(f"Store operation '{operation}' timed out after {timeout:.1f}s")
