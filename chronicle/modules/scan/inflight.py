"""Per-key single-flight guard for slow AI calls.

Keys are independent: a scan of one character (``scan:<id>``) never blocks a
scan of another character or an enhancement of an unrelated field. A claim
that is cancelled while its call is still awaiting turns ``is_current`` false,
so its owner discards the result, and the key is free to be claimed again.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime

from chronicle.utils.time import utc_now_aware

log = logging.getLogger(__name__)

SCAN_KEY_PREFIX = "scan"


class AlreadyInFlightError(RuntimeError):
    def __init__(self, key: str):
        super().__init__(f"operation already in flight: {key}")
        self.key = key


@dataclass(slots=True)
class _Claim:
    token: str
    started_at: datetime = field(default_factory=utc_now_aware)
    cancelled: bool = False


def scan_key(character_id: str) -> str:
    return f"{SCAN_KEY_PREFIX}:{character_id}"


class InFlightRegistry:
    def __init__(self) -> None:
        self._claims: dict[str, _Claim] = {}

    def claim(self, key: str) -> str:
        current = self._claims.get(key)
        if current is not None and not current.cancelled:
            raise AlreadyInFlightError(key)
        token = uuid.uuid4().hex
        self._claims[key] = _Claim(token=token)
        log.debug("claimed %s", key)
        return token

    def release(self, key: str, token: str) -> bool:
        current = self._claims.get(key)
        if current is None or current.token != token:
            return False
        del self._claims[key]
        log.debug("released %s", key)
        return True

    def cancel(self, key: str) -> bool:
        current = self._claims.get(key)
        if current is None or current.cancelled:
            return False
        current.cancelled = True
        log.info("cancelled in-flight %s", key)
        return True

    def is_current(self, key: str, token: str) -> bool:
        current = self._claims.get(key)
        return current is not None and current.token == token and not current.cancelled

    def is_in_flight(self, key: str) -> bool:
        current = self._claims.get(key)
        return current is not None and not current.cancelled

    def keys(self) -> list[str]:
        return sorted(key for key, claim in self._claims.items() if not claim.cancelled)

    def clear(self) -> None:
        self._claims.clear()


_registry: InFlightRegistry | None = None


def get_inflight_registry() -> InFlightRegistry:
    global _registry
    if _registry is None:
        _registry = InFlightRegistry()
    return _registry
