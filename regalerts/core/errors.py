from __future__ import annotations


class RegAlertsError(Exception):
    """Base error for the regulatory alerts service."""


class UnknownProcedureError(RegAlertsError):
    """Stored procedure name is not registered with the RPC client."""


class SessionVerificationError(RegAlertsError):
    """Access token could not be verified against the auth service."""


class AuthServiceUnavailableError(SessionVerificationError):
    """Auth service did not answer a session lookup."""


class JobAlreadyRunningError(RegAlertsError):
    """A sync or backfill job of the requested kind is already running."""

    def __init__(self, trigger_type: str | None = None) -> None:
        self.trigger_type = trigger_type
        scope = trigger_type or "sync"
        super().__init__(f"A {scope} job is already running")
