"""Sample user functions for the map, map-stream and batch-map servers."""

from __future__ import annotations

import base64
import binascii
import json
import re
import threading
from collections.abc import Iterable, Iterator, Sequence
from datetime import datetime, timezone

from .batchmapper import BatchResponse
from .datum import Datum
from .mapper import Mapper
from .message import Message

SUCCESS_ITERATION = 3

_INTEGER = re.compile(rb"[+-]?[0-9]+")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_UINT64_MAX = 2**64 - 1


def _parse_int(raw: bytes) -> int | None:
    """Parse a decimal 64-bit integer the strict way; None if it is not one."""
    if not _INTEGER.fullmatch(raw):
        return None
    number = int(raw)
    if not _INT64_MIN <= number <= _INT64_MAX:
        return None
    return number


def even_odd(keys: Sequence[str], datum: Datum) -> list[Message]:
    """Key integers as "even" or "odd"; drop anything that is not an integer."""
    number = _parse_int(datum.value)
    if number is None:
        return [Message.to_drop()]
    if number % 2 == 0:
        return [Message(datum.value).with_keys(["even"]).with_tags(["even-tag"])]
    return [Message(datum.value).with_keys(["odd"]).with_tags(["odd-tag"])]


def flat_map(keys: Sequence[str], datum: Datum) -> list[Message]:
    """Split the value on commas into one message per part."""
    return [Message(part) for part in datum.value.split(b",")]


def forward_message(keys: Sequence[str], datum: Datum) -> list[Message]:
    """Forward the input value and keys unchanged."""
    return [Message(datum.value).with_keys(keys)]


class RetryMapper(Mapper):
    """Tags a message "retry" until it has been seen SUCCESS_ITERATION times."""

    def __init__(self):
        self._counts: dict[bytes, int] = {}
        self._lock = threading.Lock()

    def map(self, keys: Sequence[str], datum: Datum) -> list[Message]:
        value = datum.value
        with self._lock:
            count = self._counts.get(value, 0) + 1
            if count >= SUCCESS_ITERATION:
                self._counts.pop(value, None)
            else:
                self._counts[value] = count
        text = value.decode("utf-8", errors="replace")
        print(f"count for {json.dumps(text)}={count}")
        if count >= SUCCESS_ITERATION:
            return [Message(value)]
        return [Message(value).with_tags(["retry"])]


class _DecodeError(ValueError):
    pass


def _field(obj: dict, name: str):
    """Look up a JSON field case-insensitively, as the payload format allows."""
    found = None
    for key, value in obj.items():
        if key.lower() == name:
            found = value
    return found


def _require_int(value, low: int, high: int) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int) or not low <= value <= high:
        raise _DecodeError("not an integer in range")
    return value


def _decode_tick(raw: bytes) -> tuple[int, int]:
    try:
        payload = json.loads(raw)
    except (ValueError, UnicodeDecodeError) as exc:
        raise _DecodeError(str(exc)) from exc
    if payload is None:
        return 0, 0
    if not isinstance(payload, dict):
        raise _DecodeError("payload is not an object")
    value = 0
    data = _field(payload, "data")
    if data is not None:
        if not isinstance(data, dict):
            raise _DecodeError("data is not an object")
        value = _require_int(_field(data, "value"), 0, _UINT64_MAX)
        padding = _field(data, "padding")
        if padding is not None:
            if not isinstance(padding, str):
                raise _DecodeError("padding is not a string")
            try:
                base64.b64decode(padding, validate=True)
            except (binascii.Error, ValueError) as exc:
                raise _DecodeError(str(exc)) from exc
    created = _require_int(_field(payload, "createdts"), _INT64_MIN, _INT64_MAX)
    return value, created


def _rfc3339(nanoseconds: int) -> str:
    moment = datetime.fromtimestamp(nanoseconds // 1_000_000_000, tz=timezone.utc).astimezone()
    stamp = moment.strftime("%Y-%m-%dT%H:%M:%S")
    offset = moment.utcoffset()
    minutes = int(offset.total_seconds() // 60) if offset is not None else 0
    if minutes == 0:
        return stamp + "Z"
    sign = "+" if minutes > 0 else "-"
    hours, mins = divmod(abs(minutes), 60)
    return f"{stamp}{sign}{hours:02d}:{mins:02d}"


def tick_gen(keys: Sequence[str], datum: Datum) -> list[Message]:
    """Turn a generator payload into {"Value", "Time"}; drop undecodable input."""
    try:
        value, created = _decode_tick(datum.value)
    except _DecodeError:
        return []
    body = json.dumps({"Value": value, "Time": _rfc3339(created)}, separators=(",", ":"))
    return [Message(body.encode()).with_keys(keys)]


def batch_flat_map(datums: Iterable[Datum]) -> list[BatchResponse]:
    """Split every datum of a batch on commas, one response per datum."""
    responses = []
    for datum in datums:
        response = BatchResponse(datum.id)
        for part in datum.value.split(b","):
            response.append(Message(part))
        responses.append(response)
    return responses


def flat_map_stream(keys: Sequence[str], datum: Datum) -> Iterator[Message]:
    """Split the value on commas, streaming each part as it is produced."""
    for part in datum.value.split(b","):
        yield Message(part)