import asyncio
import time
from dataclasses import dataclass
from typing import Callable

import structlog

from sci.utils.github import GitHubAPIClient

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class TrustCachePolicy:
    """
    How long each lookup outcome is remembered, in seconds.

    None keeps the entry forever, 0 never stores it. The default remembers a
    collaborator for the process lifetime and asks GitHub again every time
    for an actor that was refused.
    """

    trusted_ttl: float | None = None
    untrusted_ttl: float | None = 0

    def ttl_for(self, trusted: bool) -> float | None:
        return self.trusted_ttl if trusted else self.untrusted_ttl


class AuthorizationCache:
    def __init__(
        self,
        github: GitHubAPIClient,
        policy: TrustCachePolicy | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.github = github
        self.policy = policy or TrustCachePolicy()
        self.clock = clock
        # "owner/repo" -> actor -> (trusted, expires_at or None)
        self._records: dict[str, dict[str, tuple[bool, float | None]]] = {}
        self._lock = asyncio.Lock()

    def cached(self, owner: str, repo: str, actor: str) -> bool | None:
        record = self._records.get(f"{owner}/{repo}", {}).get(actor)
        if record is None:
            return None
        trusted, expires_at = record
        if expires_at is not None and self.clock() >= expires_at:
            return None
        return trusted

    async def is_trusted(self, owner: str, repo: str, actor: str) -> bool:
        key = f"{owner}/{repo}"
        async with self._lock:
            cached = self.cached(owner, repo, actor)
            if cached is not None:
                return cached

            trusted = await self.github.is_collaborator(owner, repo, actor)
            ttl = self.policy.ttl_for(trusted)
            if ttl is None:
                self._records.setdefault(key, {})[actor] = (trusted, None)
            elif ttl > 0:
                self._records.setdefault(key, {})[actor] = (
                    trusted,
                    self.clock() + ttl,
                )
            else:
                self._records.get(key, {}).pop(actor, None)

            logger.info("Collaborator lookup", repo=key, actor=actor, trusted=trusted)
            return trusted
