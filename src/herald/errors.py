"""Error taxonomy shared by the lifecycle API, dispatcher and HTTP layer.

- ValidationError: bad input shape or values, caller-correctable
- NotFoundError: unknown id or ownership mismatch (indistinguishable)
- InvalidStateError: operation not allowed in the current lifecycle state
- DeliveryError: Slack send failure, classified by DeliveryErrorKind
- ConfigurationError: missing external configuration for one flow
- AuthenticationError: the HTTP caller could not be identified
- InternalError: anything unexpected, such as the store being unavailable
"""

from enum import StrEnum


class HeraldError(Exception):
    """Base class for errors surfaced to callers."""

    code = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}


class ValidationError(HeraldError):
    code = "validation_error"


class NotFoundError(HeraldError):
    code = "not_found"


class CredentialNotFoundError(NotFoundError):
    """No stored credential exists for an owner."""

    code = "credential_not_found"


class InvalidStateError(HeraldError):
    code = "invalid_state"


class AuthenticationError(HeraldError):
    """Missing, rejected or unknown API bearer token."""

    code = "unauthorized"


class ConfigurationError(HeraldError):
    code = "configuration_error"


class InternalError(HeraldError):
    """An operation failed for a reason the caller cannot correct (storage down)."""

    code = "internal_error"


class DeliveryErrorKind(StrEnum):
    AUTH_INVALID = "auth_invalid"
    RATE_LIMITED = "rate_limited"
    CHANNEL_UNREACHABLE = "channel_unreachable"
    UNKNOWN = "unknown"


_KIND_DESCRIPTIONS = {
    DeliveryErrorKind.AUTH_INVALID: "Slack rejected the credential",
    DeliveryErrorKind.RATE_LIMITED: "Slack rate limit reached",
    DeliveryErrorKind.CHANNEL_UNREACHABLE: "Destination is unreachable",
    DeliveryErrorKind.UNKNOWN: "Delivery failed",
}


class DeliveryError(HeraldError):
    """A send or validation call to Slack failed.

    Attributes:
        kind: Classified failure kind.
        platform_error: Raw Slack error code or HTTP status, if any.
        retry_after: Seconds suggested by Slack for rate-limited calls.
    """

    code = "delivery_error"

    def __init__(
        self,
        kind: DeliveryErrorKind,
        detail: str | None = None,
        *,
        platform_error: str | None = None,
        retry_after: int | None = None,
    ) -> None:
        description = _KIND_DESCRIPTIONS[kind]
        if detail:
            description = f"{description}: {detail}"
        super().__init__(description)
        self.kind = kind
        self.platform_error = platform_error
        self.retry_after = retry_after

    def to_dict(self) -> dict[str, str]:
        data = super().to_dict()
        data["kind"] = self.kind.value
        return data


class CredentialRejectedError(DeliveryError):
    """A stored credential failed auth.test before anything was sent."""

    def __init__(self) -> None:
        super().__init__(DeliveryErrorKind.AUTH_INVALID)
        self.message = "Access token is invalid or expired"
        self.args = (self.message,)
