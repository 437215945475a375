"""Maven-style version utilities."""

import re
from dataclasses import dataclass
from functools import total_ordering


@total_ordering
@dataclass
class MavenVersion:
    """Dotted numeric version with an optional qualifier.

    Examples: ``16``, ``16.2``, ``16.2.0``, ``15.0.1-SNAPSHOT``.
    Missing numeric components compare as zero, and a qualified version
    sorts before the same unqualified release.
    """

    numbers: tuple[int, ...]
    qualifier: str | None = None

    _VERSION_PATTERN = re.compile(r"^(?P<numbers>\d+(?:\.\d+)*)(?:[-.](?P<qualifier>[0-9A-Za-z.-]+))?$")

    @classmethod
    def parse(cls, version_str: str) -> "MavenVersion":
        """Parse a version string.

        Raises:
            ValueError: If the string is not a dotted numeric version
        """
        match = cls._VERSION_PATTERN.match(version_str.strip())
        if not match:
            raise ValueError(f"Invalid version: {version_str}")

        numbers = tuple(int(part) for part in match.group("numbers").split("."))
        return cls(numbers=numbers, qualifier=match.group("qualifier"))

    def _padded(self, length: int) -> tuple[int, ...]:
        return self.numbers + (0,) * (length - len(self.numbers))

    def __str__(self) -> str:
        version = ".".join(str(n) for n in self.numbers)
        if self.qualifier:
            version += f"-{self.qualifier}"
        return version

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MavenVersion):
            return NotImplemented
        length = max(len(self.numbers), len(other.numbers))
        return (
            self._padded(length) == other._padded(length)
            and (self.qualifier or "").lower() == (other.qualifier or "").lower()
        )

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, MavenVersion):
            return NotImplemented

        length = max(len(self.numbers), len(other.numbers))
        if self._padded(length) != other._padded(length):
            return self._padded(length) < other._padded(length)

        # Qualified versions (snapshots, milestones) precede the release
        if self.qualifier and not other.qualifier:
            return True
        if not self.qualifier and other.qualifier:
            return False
        if self.qualifier and other.qualifier:
            return self.qualifier.lower() < other.qualifier.lower()

        return False

    def __hash__(self) -> int:
        numbers = list(self.numbers)
        while numbers and numbers[-1] == 0:
            numbers.pop()
        return hash((tuple(numbers), (self.qualifier or "").lower()))


def is_within(version: str, minimum: str | None = None, maximum: str | None = None) -> bool:
    """Check a version against optional bounds.

    Args:
        version: Version to check
        minimum: Inclusive lower bound, or None
        maximum: Exclusive upper bound, or None

    Returns:
        True if the version lies within the bounds; False if any of the
        strings is not a valid version
    """
    try:
        parsed = MavenVersion.parse(version)
        if minimum is not None and parsed < MavenVersion.parse(minimum):
            return False
        if maximum is not None and parsed >= MavenVersion.parse(maximum):
            return False
    except ValueError:
        return False
    return True
