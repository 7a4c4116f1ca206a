"""Release version model — semi-semantic ordering and auto-increment.

Version strings have the shape ``RELEASE[-PRE_RELEASE][+POST_RELEASE]`` where
each segment is a dot-separated list of components, e.g. ``8.1+dev.3`` or
``1.0-beta.2``.  Only the release segment is ever auto-incremented.
"""

from __future__ import annotations

import re
from functools import total_ordering

from pydantic import BaseModel, ConfigDict, field_validator

_SEGMENT_RE = re.compile(r"^[0-9A-Za-z_]+(\.[0-9A-Za-z_]+)*$")
_VERSION_RE = re.compile(
    r"^(?P<release>[^-+]+)(?:-(?P<pre>[^+]+))?(?:\+(?P<post>.+))?$"
)

DEV_MARKER = "dev"


class InvalidVersionError(ValueError):
    """Raised when a version string cannot be parsed."""


def _component_key(component: str) -> tuple[int, int | str]:
    # Numeric components sort before alphanumeric ones.
    if component.isdigit():
        return (0, int(component))
    return (1, component)


def _segment_key(components: tuple[str, ...]) -> tuple[tuple[int, int | str], ...]:
    return tuple(_component_key(c) for c in components)


def _pad(a: tuple[str, ...], b: tuple[str, ...]) -> tuple[tuple[str, ...], tuple[str, ...]]:
    width = max(len(a), len(b))
    return a + ("0",) * (width - len(a)), b + ("0",) * (width - len(b))


@total_ordering
class ReleaseVersion(BaseModel):
    """A parsed release version.

    Ordering: release components compare numerically (``1.10 > 1.9``, and
    ``1 == 1.0``); a pre-release sorts below its bare release; a post-release
    sorts above it.
    """

    model_config = ConfigDict(frozen=True)

    release: tuple[str, ...]
    pre_release: tuple[str, ...] = ()
    post_release: tuple[str, ...] = ()

    @field_validator("release")
    @classmethod
    def _release_not_empty(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if not value:
            raise ValueError("release segment must not be empty")
        return value

    @classmethod
    def parse(cls, version: str | int) -> ReleaseVersion:
        """Parse a version string (``int`` accepted for YAML-loaded values)."""
        text = str(version).strip()
        match = _VERSION_RE.match(text)
        if not match:
            raise InvalidVersionError(f"Invalid release version: {text!r}")

        segments: dict[str, tuple[str, ...]] = {}
        for key in ("release", "pre", "post"):
            raw = match.group(key)
            if raw is None:
                segments[key] = ()
                continue
            if not _SEGMENT_RE.match(raw):
                raise InvalidVersionError(f"Invalid release version: {text!r}")
            segments[key] = tuple(raw.split("."))

        return cls(
            release=segments["release"],
            pre_release=segments["pre"],
            post_release=segments["post"],
        )

    # ------------------------------------------------------------------
    # Semantics
    # ------------------------------------------------------------------

    @property
    def is_dev_build(self) -> bool:
        """Whether this version denotes a development build (``0.2-dev``, ``8.1+dev.3``)."""
        return DEV_MARKER in self.pre_release or DEV_MARKER in self.post_release

    def increment_release(self) -> ReleaseVersion:
        """Return the next release, dropping any pre/post-release suffix.

        The last release component is incremented: ``2 -> 3``, ``1.4 -> 1.5``.
        A non-numeric last component cannot be incremented.
        """
        last = self.release[-1]
        if not last.isdigit():
            raise InvalidVersionError(
                f"Cannot increment non-numeric release component {last!r} of {self}"
            )
        return ReleaseVersion(release=self.release[:-1] + (str(int(last) + 1),))

    # ------------------------------------------------------------------
    # Ordering
    # ------------------------------------------------------------------

    def _sort_key(self) -> tuple:
        return (
            # Missing pre-release sorts above any pre-release.
            (1,) if not self.pre_release else (0, _segment_key(self.pre_release)),
            (0,) if not self.post_release else (1, _segment_key(self.post_release)),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ReleaseVersion):
            return NotImplemented
        left, right = _pad(self.release, other.release)
        return (
            _segment_key(left) == _segment_key(right)
            and self._sort_key() == other._sort_key()
        )

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, ReleaseVersion):
            return NotImplemented
        left, right = _pad(self.release, other.release)
        if _segment_key(left) != _segment_key(right):
            return _segment_key(left) < _segment_key(right)
        return self._sort_key() < other._sort_key()

    def __hash__(self) -> int:
        # Equal versions differ only by zero padding and leading zeros.
        release = _segment_key(self.release)
        while len(release) > 1 and release[-1] == (0, 0):
            release = release[:-1]
        return hash((release, self._sort_key()))

    def __str__(self) -> str:
        text = ".".join(self.release)
        if self.pre_release:
            text += "-" + ".".join(self.pre_release)
        if self.post_release:
            text += "+" + ".".join(self.post_release)
        return text
