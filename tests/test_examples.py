import json
from datetime import datetime, timezone

import pytest

from numaflow_sdk.batchmapper import BatchResponse
from numaflow_sdk.datum import Datum
from numaflow_sdk.examples import (
    RetryMapper,
    batch_flat_map,
    even_odd,
    flat_map,
    flat_map_stream,
    forward_message,
    tick_gen,
)
from numaflow_sdk.message import DROP, Message


def _datum(value, keys=("k",), id=""):
    return Datum(value=value, keys=keys, id=id)


@pytest.mark.parametrize("value", [b"4", b"0", b"-8", b"+2"])
def test_even_odd_even(value):
    [msg] = even_odd(["k"], _datum(value))
    assert msg.value == value
    assert msg.keys == ("even",)
    assert msg.tags == ("even-tag",)


@pytest.mark.parametrize("value", [b"3", b"-7"])
def test_even_odd_odd(value):
    [msg] = even_odd(["k"], _datum(value))
    assert msg.keys == ("odd",)
    assert msg.tags == ("odd-tag",)


@pytest.mark.parametrize("value", [b"abc", b"", b" 4", b"1.5", b"99999999999999999999"])
def test_even_odd_drops_non_integers(value):
    result = even_odd(["k"], _datum(value))
    assert result == [Message.to_drop()]
    assert DROP in result[0].tags


def test_flat_map_splits_on_commas():
    result = flat_map(["k"], _datum(b"a,b,c"))
    assert [m.value for m in result] == [b"a", b"b", b"c"]


def test_flat_map_without_comma_keeps_value():
    result = flat_map(["k"], _datum(b"single"))
    assert [m.value for m in result] == [b"single"]


def test_forward_message_keeps_value_and_keys():
    [msg] = forward_message(["x", "y"], _datum(b"payload"))
    assert msg.value == b"payload"
    assert msg.keys == ("x", "y")
    assert msg.tags == ()


def test_retry_mapper_succeeds_on_third_attempt(capsys):
    mapper = RetryMapper()
    datum = _datum(b"hello")
    first = mapper.map([], datum)
    second = mapper.map([], datum)
    third = mapper.map([], datum)
    assert first[0].tags == ("retry",)
    assert second[0].tags == ("retry",)
    assert third[0].tags == ()
    assert third[0].value == b"hello"
    assert 'count for "hello"=3' in capsys.readouterr().out


def test_retry_mapper_restarts_count_after_success():
    mapper = RetryMapper()
    datum = _datum(b"again")
    for _ in range(3):
        mapper.map([], datum)
    assert mapper.map([], datum)[0].tags == ("retry",)


def test_retry_mapper_counts_messages_separately():
    mapper = RetryMapper()
    mapper.map([], _datum(b"a"))
    mapper.map([], _datum(b"a"))
    assert mapper.map([], _datum(b"b"))[0].tags == ("retry",)
    assert mapper.map([], _datum(b"a"))[0].tags == ()


def _parse_time(text):
    return datetime.fromisoformat(text.replace("Z", "+00:00"))


def test_tick_gen_converts_payload():
    created = 1_700_000_000_123_456_789
    raw = json.dumps({"Data": {"value": 7}, "Createdts": created}).encode()
    [msg] = tick_gen(["key"], _datum(raw))
    assert msg.keys == ("key",)
    body = json.loads(msg.value)
    assert list(body) == ["Value", "Time"]
    assert body["Value"] == 7
    expected = datetime.fromtimestamp(created // 1_000_000_000, tz=timezone.utc)
    assert _parse_time(body["Time"]) == expected


def test_tick_gen_field_names_are_case_insensitive():
    raw = json.dumps({"data": {"Value": 5}, "createdts": 0}).encode()
    [msg] = tick_gen([], _datum(raw))
    body = json.loads(msg.value)
    assert body["Value"] == 5
    assert _parse_time(body["Time"]) == datetime(1970, 1, 1, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "raw",
    [
        b"not json",
        b"[1, 2]",
        json.dumps({"Data": {"value": -1}, "Createdts": 0}).encode(),
        json.dumps({"Data": {"value": 1}, "Createdts": 1.5}).encode(),
        json.dumps({"Data": {"padding": "!!!"}, "Createdts": 0}).encode(),
    ],
)
def test_tick_gen_drops_undecodable_input(raw):
    assert tick_gen(["k"], _datum(raw)) == []


def test_batch_flat_map_one_response_per_datum():
    datums = [_datum(b"a,b", id="id1"), _datum(b"c", id="id2")]
    responses = batch_flat_map(iter(datums))
    assert [r.id for r in responses] == ["id1", "id2"]
    assert [[m.value for m in r.messages] for r in responses] == [[b"a", b"b"], [b"c"]]
    assert all(isinstance(r, BatchResponse) for r in responses)


def test_batch_flat_map_empty_batch():
    assert batch_flat_map(iter([])) == []


def test_flat_map_stream_yields_parts_lazily():
    stream = flat_map_stream(["k"], _datum(b"x,y,z"))
    assert next(stream).value == b"x"
    assert [m.value for m in stream] == [b"y", b"z"]


def test_flat_map_stream_matches_flat_map():
    datum = _datum(b"1,2,,3")
    assert list(flat_map_stream(["k"], datum)) == flat_map(["k"], datum)