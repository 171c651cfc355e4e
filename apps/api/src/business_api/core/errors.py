"""Exceptions shared by the business-service components."""

from __future__ import annotations


class ServiceConfigurationError(RuntimeError):
    """Raised when a component is built without its required configuration."""

    def __init__(self, missing: list[str] | tuple[str, ...], *, component: str) -> None:
        self.missing = list(missing)
        self.component = component
        super().__init__(f"Missing {', '.join(self.missing)} for {component}")


class UserServiceError(RuntimeError):
    """Raised when the user-service answers with a failure or cannot be reached."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TokenAcquisitionError(UserServiceError):
    """Raised when the client-credentials token endpoint fails."""


__all__ = ["ServiceConfigurationError", "TokenAcquisitionError", "UserServiceError"]
