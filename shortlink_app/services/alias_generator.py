"""
Alias generation for URL shortener.

Random aliases from a cryptographically strong source, encoded with the
URL-safe base64 alphabet (A-Z, a-z, 0-9, '-', '_').
"""

import base64
import logging
import secrets
from typing import Callable

from shortlink_app.aliases.strategies import AliasStore
from shortlink_app.errors import DuplicateCollision, GenerationExhausted

logger = logging.getLogger(__name__)

ALIAS_ALPHABET = (
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    "abcdefghijklmnopqrstuvwxyz"
    "0123456789-_"
)


class AliasGenerator:
    """
    Random alias generator with collision checking against the alias store.

    Pros: Unguessable, no coordination between instances
    Cons: Needs an existence check per candidate (collisions are rare but possible)
    """

    def __init__(
        self,
        store: AliasStore,
        length: int = 7,
        ttl: int = 30 * 24 * 60 * 60,
        max_attempts: int = 25,
        random_bytes: Callable[[int], bytes] = secrets.token_bytes
    ):
        """
        Args:
            store: Alias store used for the existence check and the write
            length: Exact alias length
            ttl: Lifetime of allocated aliases in seconds
            max_attempts: Upper bound on candidates tried per allocation
            random_bytes: Source of random bytes (injectable for tests)
        """
        self.store = store
        self.length = length
        self.ttl = ttl
        self.max_attempts = max_attempts
        self.random_bytes = random_bytes

    def generate(self) -> str:
        """
        Generate one candidate alias.

        6 bits per base64 character, plus one spare byte so the encoding is
        always at least `length` characters before truncation.
        """
        raw = self.random_bytes(self.length * 6 // 8 + 1)
        encoded = base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")
        return encoded[:self.length]

    async def allocate(self, target_url: str) -> str:
        """
        Allocate an unused alias and store it with the configured TTL.

        Returns:
            The new alias

        Raises:
            GenerationExhausted: if every attempt hit an existing alias
            StoreUnavailable: if the store cannot be reached
        """
        for attempt in range(1, self.max_attempts + 1):
            alias = self.generate()

            if await self.store.exists(alias):
                logger.debug("Alias collision on %s (attempt %d)", alias, attempt)
                continue

            try:
                await self.store.put(alias, target_url, self.ttl)
            except DuplicateCollision:
                # Taken between the existence check and the write
                logger.debug("Alias %s taken concurrently (attempt %d)", alias, attempt)
                continue

            logger.info("Allocated alias %s for %s", alias, target_url)
            return alias

        logger.error("Alias generation exhausted after %d attempts", self.max_attempts)
        raise GenerationExhausted(self.max_attempts)
