"""Exceptions raised by the access gate and the wizard engine."""
from typing import Optional


class WizardError(Exception):
    """Base exception for identity provider onboarding."""
    pass


class ConfigurationError(WizardError):
    """Static misconfiguration (role tables, step sequences).

    Fatal: raised at startup or wizard construction, never at runtime.
    """
    pass


class NavigationRejected(WizardError):
    """Requested step is not reachable; the operator stays on the current step."""
    pass


class OperationInProgress(WizardError):
    """An external call is already outstanding, or the provider was already created."""
    pass


class WizardClosed(WizardError):
    """Wizard session was closed and holds no state anymore."""
    pass


class GatewayFault(WizardError):
    """Federation gateway call failed (network error, timeout, rejected payload).

    Attributes:
        message: Human-readable description
        status_code: HTTP status code from the admin API, if any
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        if status_code is not None:
            super().__init__(f"[{status_code}] {message}")
        else:
            super().__init__(message)
