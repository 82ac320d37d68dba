"""Age and count bounds for the notification collection."""

from dataclasses import dataclass, field

from ..clock import days_to_ms
from ..models import Notification

DEFAULT_MAX_AGE_DAYS = 30
DEFAULT_MAX_COUNT = 150


@dataclass
class RetentionResult:
    kept: list[Notification] = field(default_factory=list)
    expired: list[Notification] = field(default_factory=list)
    evicted: list[Notification] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.expired or self.evicted)


@dataclass
class RetentionPolicy:
    """Bounds notifications by age then count.

    The age bound keeps entries whose creation timestamp is at most
    ``max_age_days`` old. The count bound then keeps the ``max_count``
    newest, evicting the oldest excess.
    """

    max_age_days: int = DEFAULT_MAX_AGE_DAYS
    max_count: int = DEFAULT_MAX_COUNT

    @property
    def max_age_ms(self) -> int:
        return days_to_ms(self.max_age_days)

    def apply(self, items: list[Notification], now_ms: int) -> RetentionResult:
        result = RetentionResult()
        fresh = []
        for item in items:
            if now_ms - item.timestamp <= self.max_age_ms:
                fresh.append(item)
            else:
                result.expired.append(item)

        fresh.sort(key=lambda n: n.timestamp)
        excess = len(fresh) - self.max_count
        if excess > 0:
            result.evicted = fresh[:excess]
            fresh = fresh[excess:]

        result.kept = fresh
        return result
