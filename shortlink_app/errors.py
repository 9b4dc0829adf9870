"""
Error taxonomy shared by the stores, the generator and the aggregator.

- NotFound: alias is absent or expired (HTTP 404 at the edge)
- StoreUnavailable: the backing store could not complete the call
- MalformedEvent: a log entry is missing required fields (dropped, never retried)
- DuplicateCollision: a generated alias is already taken (generator retries)
- GenerationExhausted: the generator ran out of attempts
"""


class ShortlinkError(Exception):
    """Base class for all application errors"""


class NotFound(ShortlinkError):
    def __init__(self, alias: str):
        super().__init__(f"Alias not found: {alias}")
        self.alias = alias


class StoreUnavailable(ShortlinkError):
    pass


class MalformedEvent(ShortlinkError):
    def __init__(self, entry_id: str, reason: str):
        super().__init__(f"Malformed event {entry_id}: {reason}")
        self.entry_id = entry_id
        self.reason = reason


class DuplicateCollision(ShortlinkError):
    def __init__(self, alias: str):
        super().__init__(f"Alias already in use: {alias}")
        self.alias = alias


class GenerationExhausted(ShortlinkError):
    def __init__(self, attempts: int):
        super().__init__(f"Could not generate a unique alias after {attempts} attempts")
        self.attempts = attempts
