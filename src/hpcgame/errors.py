"""Errors raised by the provisioning engine."""


class HpcgameError(Exception):
    """Base exception for provisioning errors."""


class ConfigurationError(HpcgameError):
    """Raised when the cluster credential file is missing or unreadable."""


class CatalogUnavailable(HpcgameError):
    """Raised when no usable partition data exists locally or remotely."""


class FetchFailed(HpcgameError):
    """Raised when the remote partition catalog cannot be fetched or parsed."""


class WriteFailed(HpcgameError):
    """Raised when the fetched catalog cannot be persisted."""


class ValidationFailed(HpcgameError):
    """Raised when requested quantities fall outside partition limits."""


class ReservedName(HpcgameError):
    """Raised when a create or delete targets a protected default claim name."""

    def __init__(self, name, action):
        self.name = name
        self.action = action
        super().__init__(
            f"cannot {action} volume '{name}': names containing the default claim marker are reserved"
        )


class NotFound(HpcgameError):
    """Raised when the named cluster object does not exist."""


class ApiFailure(HpcgameError):
    """Base for failures reported by the Kubernetes API.

    The API diagnostic text is kept on ``detail`` so callers can surface it.
    """

    def __init__(self, message, detail=None):
        self.detail = detail
        if detail:
            message = f"{message}\n{detail}"
        super().__init__(message)


class ProvisioningFailed(ApiFailure):
    """Raised when a claim or pod submission is rejected."""


class DeletionFailed(ApiFailure):
    """Raised when a claim or pod deletion is rejected."""
