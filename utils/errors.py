class DomainError(Exception):
    """Base for errors that map onto a client-facing HTTP status."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DomainError):
    status_code = 400


class InvariantViolation(DomainError):
    """A write would break a stored invariant (e.g. link before payment)."""

    status_code = 400


class ConflictError(DomainError):
    status_code = 409


class NotFoundError(DomainError):
    status_code = 404


class AuthConfigError(DomainError):
    """Zoom credentials are missing from configuration."""

    status_code = 500


class ProviderApiError(DomainError):
    """Zoom API call failed after the single credential-refresh retry."""

    status_code = 502

    def __init__(self, message: str, status=None, upstream_message=None):
        super().__init__(message)
        self.status = status
        self.upstream_message = upstream_message

    @property
    def is_not_found(self) -> bool:
        return self.status == 404
