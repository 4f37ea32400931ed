"""Output messages returned by user map functions."""

from __future__ import annotations

from dataclasses import dataclass, replace

from .protocol import Result

DROP = "U+005C__DROP__"


@dataclass(frozen=True)
class Message:
    """A value with optional keys and tags; tags drive conditional forwarding."""

    value: bytes
    keys: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "keys", tuple(self.keys or ()))
        object.__setattr__(self, "tags", tuple(self.tags or ()))

    @classmethod
    def to_drop(cls) -> Message:
        """A message that tells the platform to drop the input."""
        return cls(value=b"", tags=(DROP,))

    def with_keys(self, keys) -> Message:
        """Copy with the given keys."""
        return replace(self, keys=tuple(keys or ()))

    def with_tags(self, tags) -> Message:
        """Copy with the given tags."""
        return replace(self, tags=tuple(tags or ()))

    @property
    def is_drop(self) -> bool:
        return DROP in self.tags

    def to_result(self) -> Result:
        """Convert to the wire result form."""
        return Result(keys=list(self.keys), value=self.value, tags=list(self.tags))