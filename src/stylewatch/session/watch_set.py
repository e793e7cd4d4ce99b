"""The set of files a session must keep under observation."""

from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class WatchDelta:
    """Subscriptions to add and remove to move from one watch set to another."""

    added: frozenset[Path]
    removed: frozenset[Path]

    def is_empty(self) -> bool:
        return not self.added and not self.removed


class WatchSet:
    """Immutable set of absolute paths rooted at the entry file.

    The entry path is always a member. Imports equal to the entry path and
    duplicate imports collapse into a single member.
    """

    __slots__ = ("entry", "_paths")

    def __init__(self, entry: Path, imports: Iterable[Path] = ()) -> None:
        self.entry = entry
        self._paths = frozenset([entry, *imports])

    @classmethod
    def from_compile(cls, entry: Path, imports: Iterable[Path]) -> "WatchSet":
        """Build the set implied by a successful compile of ``entry``."""
        return cls(entry, imports)

    @property
    def paths(self) -> frozenset[Path]:
        return self._paths

    @property
    def imports(self) -> frozenset[Path]:
        """Members other than the entry file."""
        return self._paths - {self.entry}

    def delta(self, new: "WatchSet") -> WatchDelta:
        """Compute the subscriptions needed to go from this set to ``new``."""
        return WatchDelta(
            added=new.paths - self._paths,
            removed=self._paths - new.paths,
        )

    def __contains__(self, path: object) -> bool:
        return path in self._paths

    def __iter__(self):  # type: ignore
        return iter(sorted(self._paths))

    def __len__(self) -> int:
        return len(self._paths)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, WatchSet):
            return self._paths == other._paths
        if isinstance(other, (set, frozenset)):
            return self._paths == other
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._paths)

    def __repr__(self) -> str:
        return f"WatchSet({sorted(str(p) for p in self._paths)})"
