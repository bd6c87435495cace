import json
from dataclasses import dataclass, field
from typing import Iterable

from permitted.database.models import Permission

WILDCARD_SUFFIX = ".*"


def wildcard_candidates(name: str) -> list[str]:
    """
    Wildcard names that would cover ``name``, in lookup order.

    "users.posts.edit" -> ["users.*", "users.posts.*", "users.*"]
    The first-segment wildcard is tried first, then progressively shorter
    prefixes from the longest down to one segment.
    """
    parts = name.split(".")
    candidates = [parts[0] + WILDCARD_SUFFIX]
    for i in range(len(parts) - 1, 0, -1):
        candidates.append(".".join(parts[:i]) + WILDCARD_SUFFIX)
    return candidates


@dataclass(frozen=True)
class PermissionSet:
    """A principal's effective permissions: the union over all held roles."""

    entries: dict = field(default_factory=dict)  # permission id -> name

    @classmethod
    def from_permissions(cls, permissions: Iterable[Permission]) -> "PermissionSet":
        # De-duplicate by identity; the same permission may come from several roles
        return cls({p.id: p.name for p in permissions})

    @property
    def names(self) -> frozenset:
        return frozenset(self.entries.values())

    @property
    def ids(self) -> frozenset:
        return frozenset(self.entries.keys())

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, name: str) -> bool:
        return name in self.names

    def matches(self, name: str, wildcards: bool = False) -> bool:
        """Exact, case-sensitive match, preceded by wildcard lookup when enabled."""
        names = self.names
        if wildcards and "." in name:
            if any(candidate in names for candidate in wildcard_candidates(name)):
                return True
        return name in names

    def to_json(self) -> str:
        return json.dumps(self.entries, sort_keys=True)

    @classmethod
    def from_json(cls, raw: str) -> "PermissionSet":
        return cls(json.loads(raw))
