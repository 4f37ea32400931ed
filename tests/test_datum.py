from datetime import datetime, timezone

from numaflow_sdk.datum import Datum
from numaflow_sdk.protocol import EPOCH, MapRequest, Request


def test_from_request_copies_fields():
    event_time = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    watermark = datetime(2024, 5, 1, 11, 59, tzinfo=timezone.utc)
    req = MapRequest(
        request=Request(
            keys=["client"],
            value=b"test1",
            event_time=event_time,
            watermark=watermark,
            headers={"h": "v"},
        ),
        id="test1",
    )
    datum = Datum.from_request(req)
    assert datum.value == b"test1"
    assert datum.keys == ("client",)
    assert datum.id == "test1"
    assert datum.event_time == event_time
    assert datum.watermark == watermark
    assert datum.headers == {"h": "v"}


def test_from_request_without_payload():
    datum = Datum.from_request(MapRequest(id="x"))
    assert datum.id == "x"
    assert datum.value == b""
    assert datum.keys == ()
    assert datum.event_time == EPOCH
    assert datum.watermark == EPOCH


def test_headers_are_copied():
    headers = {"a": "1"}
    req = MapRequest(request=Request(headers=headers))
    datum = Datum.from_request(req)
    headers["a"] = "2"
    assert datum.headers == {"a": "1"}


def test_equal_requests_give_equal_datums():
    req = MapRequest(request=Request(keys=["k"], value=b"v"), id="i")
    assert Datum.from_request(req) == Datum.from_request(req)
    assert Datum.from_request(req) == Datum(value=b"v", id="i", keys=["k"])