"""GitHub profile verification.

Implements the source-hosting channel in three levels:
1) handle normalization + syntax validation (no network),
2) profile metrics and minimum-requirement checks via the REST/GraphQL API,
3) ownership proof: a challenge code placed in the bio, in a file of the
   public ``verification-repo`` repository, or in a public gist. A handle is
   never verified without one.

Transient upstream failures raise ``VerifierUnavailable`` once retries are
exhausted, including during the ownership lookups. A handle that does not
exist is a definitive negative result.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import re
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Callable

import httpx

from mentortrust.verifiers.base import SourceCheck, VerifierUnavailable

logger = logging.getLogger(__name__)

CHANNEL = "source"
VERIFICATION_REPO = "verification-repo"

# GitHub logins: alphanumerics and single inner hyphens, at most 39 chars
_HANDLE_PATTERN = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9]|-(?=[A-Za-z0-9])){0,38}$")

_PROFILE_PREFIXES = (
    "https://github.com/",
    "http://github.com/",
    "https://www.github.com/",
    "github.com/",
)

_CONTRIBUTIONS_QUERY = """
query($username: String!) {
  user(login: $username) {
    contributionsCollection {
      totalContributions
    }
  }
}
"""


@dataclass(frozen=True)
class MinimumRequirements:
    """Thresholds a profile must meet before it can verify. 0 disables a check."""

    account_age_days: int = 0
    repositories: int = 0
    contributions: int = 0
    followers: int = 0

    def failing(self, metrics: dict[str, int]) -> list[dict[str, Any]]:
        checks = (
            ("Account Age", metrics["account_age_days"], self.account_age_days),
            ("Public Repositories", metrics["repositories"], self.repositories),
            ("Contributions", metrics["contributions"], self.contributions),
            ("Followers", metrics["followers"], self.followers),
        )
        return [
            {"requirement": name, "current": current, "minimum": minimum}
            for name, current, minimum in checks
            if current < minimum
        ]

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


def contribution_score(contributions: int) -> int:
    """Contribution component of the profile score (max 35)."""
    if contributions > 500:
        return 35
    if contributions > 200:
        return 30
    if contributions > 100:
        return 25
    if contributions > 50:
        return 20
    if contributions > 20:
        return 15
    return min(contributions, 10)


def profile_score(metrics: dict[str, int]) -> int:
    """Normalized 0-100 score for a GitHub profile.

    Account age: 1 point per year (max 20). Repositories: 5 per repo (max 25).
    Contributions: tiered (max 35). Followers: 2 per follower (max 20).
    """
    total = (
        min(metrics["account_age_days"] / 365, 20)
        + min(metrics["repositories"] * 5, 25)
        + contribution_score(metrics["contributions"])
        + min(metrics["followers"] * 2, 20)
    )
    return round(total)


def _parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class GitHubVerifier:
    """Verify GitHub handles against the public API.

    A shared ``httpx.AsyncClient`` is created lazily unless one is injected
    (tests inject a client over ``httpx.MockTransport``).
    """

    def __init__(
        self,
        *,
        token: str = "",
        base_url: str = "https://api.github.com",
        timeout: float = 10.0,
        max_retries: int = 3,
        retry_delay: float = 0.5,
        requirements: MinimumRequirements | None = None,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max(int(max_retries), 1)
        self.retry_delay = retry_delay
        self.requirements = requirements or MinimumRequirements()
        self._client = client
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # -- Handle checks ----------------------------------------------------------

    @staticmethod
    def normalize(handle: str | None) -> str:
        """Strip profile URL prefixes and a leading ``@``."""
        if not handle:
            return ""
        value = handle.strip()
        for prefix in _PROFILE_PREFIXES:
            if value.lower().startswith(prefix):
                value = value[len(prefix):]
                break
        return value.strip().strip("/").removeprefix("@")

    @staticmethod
    def is_valid_handle(handle: str) -> bool:
        return bool(handle) and bool(_HANDLE_PATTERN.match(handle))

    # -- Public API -------------------------------------------------------------

    async def verify_profile(self, handle: str, *, challenge_code: str | None = None) -> SourceCheck:
        """Verify a handle, returning the profile score and raw evidence."""
        normalized = self.normalize(handle)
        if not self.is_valid_handle(normalized):
            return SourceCheck(
                verified=False,
                score=0,
                raw={"handle": handle, "score": 0, "error": "invalid_handle", "reason": "Handle format is invalid"},
            )

        user, repos = await asyncio.gather(
            self._get_json(f"users/{normalized}"),
            self._get_json(f"users/{normalized}/repos", params={"per_page": 100}),
        )
        if user is None:
            return SourceCheck(
                verified=False,
                score=0,
                raw={"handle": normalized, "score": 0, "error": "invalid_handle", "reason": "GitHub user not found"},
            )

        metrics = {
            "account_age_days": self._account_age_days(user.get("created_at")),
            "repositories": len(repos) if isinstance(repos, list) else 0,
            "contributions": await self._fetch_contributions(normalized),
            "followers": int(user.get("followers") or 0),
        }
        score = profile_score(metrics)
        failing = self.requirements.failing(metrics)
        ownership = await self._check_ownership(normalized, user, challenge_code)

        raw: dict[str, Any] = {
            "handle": normalized,
            "score": score,
            "metrics": metrics,
            "requirements": self.requirements.to_dict(),
            "failing": failing,
            "ownership": ownership,
        }
        verified = not failing and ownership["proven"] is True
        if failing:
            raw["reason"] = "GitHub profile does not meet minimum requirements"
        elif ownership["proven"] is None:
            raw["reason"] = "Ownership challenge required"
        elif ownership["proven"] is False:
            raw["reason"] = "Verification code not found in GitHub profile, repositories, or gists"

        logger.info("GitHub verification handle=%s verified=%s score=%d", normalized, verified, score)
        return SourceCheck(verified=verified, score=score, raw=raw)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # -- Ownership --------------------------------------------------------------

    async def _check_ownership(self, handle: str, user: dict, code: str | None) -> dict[str, Any]:
        """Look for the challenge code in the bio, ``verification-repo`` and gists.

        A found code wins over a failed lookup. When the code was not found
        and a lookup hit an outage, the outage is raised: "not found" is only
        reported when every location was actually searched.
        """
        if not code:
            return {"proven": None, "bio": False, "repo": False, "gist": False}

        if code in (user.get("bio") or ""):
            return {"proven": True, "bio": True, "repo": False, "gist": False}

        results = await asyncio.gather(
            self._repo_contains(handle, code),
            self._gist_contains(handle, code),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException) and not isinstance(result, VerifierUnavailable):
                raise result
        repo_ok, gist_ok = (result is True for result in results)

        if not (repo_ok or gist_ok):
            outages = [result for result in results if isinstance(result, VerifierUnavailable)]
            if outages:
                logger.warning("Ownership lookup for %s incomplete: %s", handle, outages[0].reason)
                raise outages[0]
        return {"proven": repo_ok or gist_ok, "bio": False, "repo": repo_ok, "gist": gist_ok}

    async def _repo_contains(self, handle: str, code: str) -> bool:
        repo = await self._get_json(f"repos/{handle}/{VERIFICATION_REPO}")
        if not repo or (repo.get("owner") or {}).get("login", "").lower() != handle.lower():
            return False
        contents = await self._get_json(f"repos/{handle}/{VERIFICATION_REPO}/contents")
        if not isinstance(contents, list):
            return False
        for entry in contents:
            if entry.get("type") != "file":
                continue
            file_data = await self._get_json(f"repos/{handle}/{VERIFICATION_REPO}/contents/{entry['path']}")
            if file_data and code in self._decode_content(file_data.get("content", "")):
                return True
        return False

    async def _gist_contains(self, handle: str, code: str) -> bool:
        gists = await self._get_json(f"users/{handle}/gists")
        if not isinstance(gists, list):
            return False
        for gist in gists:
            if (gist.get("owner") or {}).get("login", "").lower() != handle.lower():
                continue
            detail = await self._get_json(f"gists/{gist['id']}")
            for file_info in (detail or {}).get("files", {}).values():
                if file_info and code in (file_info.get("content") or ""):
                    return True
        return False

    @staticmethod
    def _decode_content(content: str) -> str:
        try:
            return base64.b64decode(content).decode("utf-8", errors="replace")
        except ValueError:
            return ""

    # -- Metrics ----------------------------------------------------------------

    def _account_age_days(self, created_at: str | None) -> int:
        if not created_at:
            return 0
        try:
            created = _parse_timestamp(created_at)
        except ValueError:
            logger.warning("Unparseable GitHub created_at value: %r", created_at)
            return 0
        return max((self._clock() - created).days, 0)

    async def _fetch_contributions(self, handle: str) -> int:
        """Total contributions via GraphQL. Requires a token; 0 otherwise."""
        if not self.token:
            return 0
        try:
            response = await self._request(
                "POST",
                "graphql",
                json={"query": _CONTRIBUTIONS_QUERY, "variables": {"username": handle}},
            )
        except VerifierUnavailable as exc:
            logger.warning("Error fetching contributions for %s: %s", handle, exc.reason)
            return 0
        if response.status_code == 404:
            return 0
        try:
            data = response.json().get("data") or {}
        except ValueError:
            logger.warning("Non-JSON contributions response for %s", handle)
            return 0
        collection = (data.get("user") or {}).get("contributionsCollection") or {}
        return int(collection.get("totalContributions") or 0)

    # -- HTTP plumbing ----------------------------------------------------------

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": "mentortrust-verifier/0.1",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    @staticmethod
    def _is_transient(response: httpx.Response) -> bool:
        if response.status_code == 429 or response.status_code >= 500:
            return True
        return response.status_code == 403 and response.headers.get("X-RateLimit-Remaining") == "0"

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Issue a request with retry logic. 404 is returned to the caller."""
        url = f"{self.base_url}/{path.lstrip('/')}"
        last_reason = "no attempt made"

        for attempt in range(self.max_retries):
            try:
                response = await self._get_client().request(method, url, headers=self._headers(), **kwargs)
            except httpx.RequestError as exc:
                last_reason = f"{type(exc).__name__}: {exc}"
            else:
                if response.status_code < 400 or response.status_code == 404:
                    return response
                if not self._is_transient(response):
                    raise VerifierUnavailable(CHANNEL, f"GitHub returned HTTP {response.status_code} for {path}")
                last_reason = f"HTTP {response.status_code}"

            logger.warning(
                "Request to %s failed (attempt %d/%d): %s",
                url, attempt + 1, self.max_retries, last_reason,
            )
            if attempt < self.max_retries - 1:
                await asyncio.sleep(self.retry_delay * (attempt + 1))

        raise VerifierUnavailable(CHANNEL, f"Failed to reach {url} after {self.max_retries} attempts ({last_reason})")

    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET a JSON document, or None when the resource does not exist."""
        response = await self._request("GET", path, params=params)
        if response.status_code == 404:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise VerifierUnavailable(CHANNEL, f"Non-JSON response from {path}") from exc
