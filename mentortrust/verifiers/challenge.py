"""Ownership challenge codes for the source-hosting channel.

A user asks for a code, places it in their GitHub bio, ``verification-repo``
or a gist, then calls verify. One pending challenge per user; issuing again
replaces the previous one.
"""

from __future__ import annotations

import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable

from mentortrust.verifiers.github import VERIFICATION_REPO, GitHubVerifier

INSTRUCTIONS = (
    "Please verify your GitHub account ownership by doing ONE of the following:\n"
    f"  1. Create a public repository named '{VERIFICATION_REPO}' with a file containing the code\n"
    "  2. Create a public gist containing the code\n"
    "  3. Add the code to your GitHub bio temporarily"
)


def _canonical(handle: str) -> str:
    return GitHubVerifier.normalize(handle).lower()


@dataclass(frozen=True)
class PendingChallenge:
    code: str
    handle: str
    expires_at: float


class ChallengeRegistry:
    """Thread-safe in-process store of pending challenge codes."""

    def __init__(self, ttl_seconds: float = 30 * 60, clock: Callable[[], float] = time.time) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._pending: dict[str, PendingChallenge] = {}
        self._lock = threading.Lock()

    def issue(self, user_id: str, handle: str, code: str | None = None) -> PendingChallenge:
        """Register a pending challenge. A fresh code is generated unless one is given."""
        challenge = PendingChallenge(
            code=code or secrets.token_hex(4),
            handle=handle,
            expires_at=self._clock() + self.ttl_seconds,
        )
        with self._lock:
            self._pending[user_id] = challenge
        return challenge

    def lookup(self, user_id: str, handle: str) -> str | None:
        """Return the pending code for this user and handle, if still valid."""
        with self._lock:
            challenge = self._pending.get(user_id)
            if challenge is None:
                return None
            if self._clock() > challenge.expires_at:
                del self._pending[user_id]
                return None
        if _canonical(challenge.handle) != _canonical(handle):
            return None
        return challenge.code

    def consume(self, user_id: str) -> bool:
        with self._lock:
            return self._pending.pop(user_id, None) is not None
