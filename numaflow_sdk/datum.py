"""Input datum handed to user map functions."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from .protocol import EPOCH, MapRequest


@dataclass(frozen=True)
class Datum:
    """Payload and metadata of one input message."""

    value: bytes = b""
    event_time: datetime = EPOCH
    watermark: datetime = EPOCH
    headers: dict[str, str] = field(default_factory=dict)
    id: str = ""
    keys: tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "keys", tuple(self.keys or ()))
        object.__setattr__(self, "headers", dict(self.headers or {}))

    @classmethod
    def from_request(cls, request: MapRequest) -> Datum:
        """Build a datum from a map request; absent parts take their defaults."""
        payload = request.request
        if payload is None:
            return cls(id=request.id)
        return cls(
            value=payload.value,
            event_time=payload.event_time,
            watermark=payload.watermark,
            headers=payload.headers,
            id=request.id,
            keys=payload.keys,
        )