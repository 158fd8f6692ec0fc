"""Error kinds surfaced by the verification core.

Callers branch on ``VerificationError.kind`` rather than on exception
subclasses, so the same reason codes flow unchanged from the orchestrator
through the service facade to the HTTP layer.
"""

from __future__ import annotations

import enum


class ErrorKind(str, enum.Enum):
    """Machine-readable reason codes."""

    NOT_AUTHENTICATED = "not_authenticated"
    NOT_ELIGIBLE = "not_eligible"
    INVALID_INPUT = "invalid_input"
    ALREADY_VERIFIED = "already_verified"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    CONFLICT = "conflict"


class VerificationError(Exception):
    """A structural failure that stops a verification attempt."""

    def __init__(self, kind: ErrorKind, reason: str) -> None:
        super().__init__(f"{kind.value}: {reason}")
        self.kind = kind
        self.reason = reason

    def to_dict(self) -> dict[str, str]:
        return {"code": self.kind.value, "reason": self.reason}
