import json
import logging
import math
from datetime import datetime, timedelta, timezone

from app.core.cache import CacheBackend, build_cache_key, cache_manager
from app.core.config import get_settings

logger = logging.getLogger(__name__)

NAMESPACE = "admin_code_attempts"


class AdminCodeAttemptTracker:
    """Failed admin-code attempts per client IP, kept in the cache backend.

    Entries expire with the lockout window, so a blocked IP is released
    either when the window passes or when a correct code clears it.
    """

    def __init__(
        self,
        backend: CacheBackend | None = None,
        *,
        max_attempts: int | None = None,
        lockout_minutes: int | None = None,
    ):
        settings = get_settings()
        self._backend = backend
        self.max_attempts = max_attempts or settings.ADMIN_CODE_MAX_ATTEMPTS
        self.lockout_minutes = lockout_minutes or settings.ADMIN_CODE_LOCKOUT_MINUTES

    @property
    def backend(self) -> CacheBackend:
        return self._backend or cache_manager.get_backend()

    def is_blocked(self, ip: str | None, *, now: datetime | None = None) -> bool:
        return self.minutes_left(ip, now=now) > 0

    def minutes_left(self, ip: str | None, *, now: datetime | None = None) -> int:
        entry = self._load(ip)
        if not entry or entry["count"] < self.max_attempts:
            return 0
        now = now or datetime.now(tz=timezone.utc)
        unblock_at = entry["last_attempt"] + timedelta(minutes=self.lockout_minutes)
        remaining = (unblock_at - now).total_seconds()
        if remaining <= 0:
            return 0
        return max(1, math.ceil(remaining / 60))

    def record_failure(self, ip: str | None, username: str | None, *, now: datetime | None = None) -> int:
        now = now or datetime.now(tz=timezone.utc)
        entry = self._load(ip) or {"count": 0}
        count = entry["count"] + 1
        payload = {
            "count": count,
            "last_attempt": now.isoformat(),
            "last_username": username,
        }
        self.backend.set(self._key(ip), json.dumps(payload), self.lockout_minutes * 60)
        logger.warning(
            "Invalid admin code from IP %s for user '%s' (attempt %s/%s)",
            ip,
            username,
            count,
            self.max_attempts,
        )
        return count

    def clear(self, ip: str | None) -> None:
        self.backend.delete(self._key(ip))

    def stats(self, *, now: datetime | None = None) -> dict:
        now = now or datetime.now(tz=timezone.utc)
        tracked = 0
        blocked = 0
        for key, _ in self.backend.scan_namespace(NAMESPACE):
            tracked += 1
            if self.minutes_left(key.split(":", 1)[1], now=now) > 0:
                blocked += 1
        return {
            "tracked_ips": tracked,
            "blocked_ips": blocked,
            "max_attempts": self.max_attempts,
            "lockout_minutes": self.lockout_minutes,
        }

    def _key(self, ip: str | None) -> str:
        return build_cache_key(NAMESPACE, ip or "unknown")

    def _load(self, ip: str | None) -> dict | None:
        raw = self.backend.get(self._key(ip))
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        data = json.loads(raw)
        data["last_attempt"] = datetime.fromisoformat(data["last_attempt"])
        return data
