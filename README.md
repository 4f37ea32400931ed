# numaflow-sdk

Building blocks for writing user-defined functions that run as map vertices
in a Numaflow pipeline. Three processing modes are supported:

- **Unary map** (`numaflow_sdk.mapper`): one request in, a list of messages out.
  Requests are handled concurrently on a thread pool, so responses may come
  back in any order.
- **Map stream** (`numaflow_sdk.mapstreamer`): one request in, messages streamed
  out one by one as the handler yields them, followed by an end-of-transmission
  marker carrying that request's id.
- **Batch map** (`numaflow_sdk.batchmapper`): a batch of requests delimited by an
  end-of-transmission request comes in, one `BatchResponse` per request id goes
  out, followed by an end-of-transmission marker.

The package has no dependencies outside the standard library.

## Messages and data

`numaflow_sdk.message.Message` wraps one output value. Messages are frozen;
`with_keys` and `with_tags` return new messages, and `to_result()` converts a
message to the `Result` that is sent on the stream.

```python
from numaflow_sdk.message import Message

Message(b"hello").with_keys(["greeting"]).with_tags(["english"])
Message.to_drop()  # empty value, tagged with the reserved DROP tag
```

Tags drive conditional forwarding; `Message.is_drop` tells whether a message
carries the drop tag.

Handlers receive a `numaflow_sdk.datum.Datum` with `value`, `event_time`,
`watermark`, `headers`, `id` and `keys`. `Datum.from_request(request)` builds
one from a `MapRequest`.

## Writing handlers

Subclass the mode's abstract class, or pass a plain function to the service:

```python
from numaflow_sdk.mapper import Mapper, MapService
from numaflow_sdk.message import Message


class Upper(Mapper):
    def map(self, keys, datum):
        return [Message(datum.value.upper()).with_keys(keys)]


service = MapService(Upper())
```

- `Mapper.map(keys, datum)` returns an iterable of messages; served by `MapService`.
- `MapStreamer.map_stream(keys, datum)` yields messages (a generator works well);
  served by `MapStreamService`.
- `BatchMapper.batch_map(datums)` consumes an iterator of datums and returns
  `BatchResponse` objects; served by `BatchMapService`. `BatchResponse(id)`
  collects messages with `append(message)`, which returns the response so
  calls can be chained.

Each service has `is_ready()`, returning `ReadyResponse(ready=True)`, and
`map_fn(stream)`, which handles one stream until the client closes it, and a
`shutdown_event` that is set when processing fails.

## Streams

`numaflow_sdk.protocol.MapStream` is an in-process bidirectional stream. The
client side queues requests with `push()` (or passes them to the constructor),
ends them with `close_send()`, and reads responses with `receive_response()`
or drains them all with `sent()`. A service reads with `recv()`, which raises
`EOFError` once the client has closed its side, and writes with `send()`.

```python
from numaflow_sdk.mapper import MapService
from numaflow_sdk.message import Message
from numaflow_sdk.protocol import Handshake, MapRequest, MapStream, Request

stream = MapStream([
    MapRequest(handshake=Handshake(sot=True)),
    MapRequest(request=Request(keys=["k"], value=b"a"), id="1"),
])
stream.close_send()
MapService(lambda keys, datum: [Message(datum.value)]).map_fn(stream)
responses = stream.sent()  # handshake reply, then the response for id "1"
```

Every stream must open with a start-of-transmission handshake, which is echoed
back. Errors are reported as follows:

- `MapService` and `MapStreamService` raise `StatusError` with
  `StatusCode.INVALID_ARGUMENT` for a missing handshake, and with
  `StatusCode.INTERNAL` when the handler raises or a response cannot be sent.
- `BatchMapService` raises `ValueError("expected handshake message")` for a
  missing handshake; an exception inside the handler, or a failed send, is
  raised from `map_fn`.

`str(StatusError)` reads `rpc error: code = <Code> desc = <message>`.

## Options

`numaflow_sdk.protocol.ServerOptions` holds the socket address, maximum
message size (64 MiB by default) and server-info file path. It is frozen;
`with_sock_addr`, `with_max_message_size` and `with_server_info_file_path`
return adjusted copies. Each mode's `default_options()` returns that mode's
defaults (`/var/run/numaflow/map.sock`, `mapstream.sock` or `batchmap.sock`,
and `/var/run/numaflow/mapper-server-info`).

## Server info

`numaflow_sdk.info` reads and writes the server-info file that tells the
platform which protocol, language, SDK version and map mode are in use:

- `get_default_server_info()` – a `ServerInfo` with protocol `uds`, language
  `python` and the installed SDK version (empty if unknown);
- `write(server_info, path)` – replace the file with the JSON form followed by
  the end marker;
- `read(path, retries=10, interval=0.1)` – read it back, waiting for the end
  marker and raising `ServerInfoNotReadyError` if it never appears
  (`FileNotFoundError` if the file is missing);
- `wait_until_ready(path, timeout=None, interval=1.0)` – block until the file
  exists and is not empty, raising `TimeoutError` when `timeout` runs out.

```python
from numaflow_sdk import info

server_info = info.get_default_server_info()
server_info.metadata = {info.MAP_MODE_KEY: info.MapMode.UNARY_MAP.value}
info.write(server_info, "/tmp/mapper-server-info")
assert info.read("/tmp/mapper-server-info") == server_info
```

The module also defines the `Protocol`, `Language`, `ContainerType` and
`MapMode` enums and the `MINIMUM_NUMAFLOW_VERSION` table.

## Examples

`numaflow_sdk.examples` contains ready-made handlers:

- `even_odd` – keys and tags integers as even or odd, drops anything else;
- `flat_map` – splits the value on commas;
- `forward_message` – forwards value and keys unchanged;
- `RetryMapper` – tags a value `retry` until it has been seen three times;
- `tick_gen` – turns a generator payload into `{"Value", "Time"}` JSON;
- `flat_map_stream` – streaming comma split for `MapStreamService`;
- `batch_flat_map` – comma split over a batch for `BatchMapService`.

## What this package does not do

There is no network server and no command: nothing here listens on a Unix
domain socket, speaks the wire RPC protocol, or handles process signals. The
services work over `MapStream` objects, and writing the server-info file is
left to the caller.