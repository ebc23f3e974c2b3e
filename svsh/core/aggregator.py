"""Status aggregation for multi-process service families.

Services named "<prefix>-<N>" (worker-1, worker-2, ...) are display-only
collapsed into one row per prefix when the session's collapse flag is on.
"""

import logging
import re
from collections import Counter
from dataclasses import dataclass, field

from svsh.core.models import Service

logger = logging.getLogger(__name__)

# Prefix is everything before the last dash; the suffix is a positive integer
FAMILY_NAME = re.compile(r"^(?P<prefix>.+)-(?P<index>[1-9][0-9]*)$")


def family_prefix(name: str) -> str | None:
    """Return the family prefix of a "<prefix>-<N>" name, or None."""
    match = FAMILY_NAME.match(name)
    return match.group("prefix") if match else None


@dataclass
class ServiceFamily:
    """Members of one collapsed family."""

    prefix: str
    members: list[Service] = field(default_factory=list)

    @property
    def status_summary(self) -> str:
        """Comma-joined "<count> <status>" per distinct status, sorted by status."""
        counts = Counter(member.status for member in self.members)
        return ", ".join(f"{counts[status]} {status}" for status in sorted(counts))

    @property
    def duration(self) -> int:
        return max((member.duration for member in self.members), default=0)

    def as_service(self, name: str | None = None) -> Service:
        return Service(
            name=name or self.prefix,
            status=self.status_summary,
            pid=None,
            duration=self.duration,
        )


class StatusAggregator:
    """Collapse service families in a status snapshot.

    USAGE:
        aggregator = StatusAggregator()
        rows = aggregator.aggregate(snapshot, collapse=session.collapse)
        for service in aggregator.ordered(rows):
            ...
    """

    def group(self, snapshot: dict[str, Service]) -> tuple[dict[str, ServiceFamily], dict[str, Service]]:
        """Split a snapshot into families and standalone services."""
        families: dict[str, ServiceFamily] = {}
        standalone: dict[str, Service] = {}
        for name, service in snapshot.items():
            prefix = family_prefix(name)
            if prefix is None:
                standalone[name] = service
                continue
            families.setdefault(prefix, ServiceFamily(prefix)).members.append(service)
        return families, standalone

    def aggregate(self, snapshot: dict[str, Service], collapse: bool) -> dict[str, Service]:
        """Collapse families when collapse is on; otherwise return snapshot as-is.

        A family whose prefix collides with a standalone service name is
        keyed "<prefix>-*" so names stay unique.
        """
        if not collapse:
            return snapshot

        families, result = self.group(snapshot)
        for prefix, family in families.items():
            name = prefix if prefix not in result else f"{prefix}-*"
            logger.debug(f"Collapsed {len(family.members)} services into '{name}'")
            result[name] = family.as_service(name)
        return result

    @staticmethod
    def ordered(snapshot: dict[str, Service]) -> list[Service]:
        """Services in lexicographic name order for display."""
        return [snapshot[name] for name in sorted(snapshot)]
