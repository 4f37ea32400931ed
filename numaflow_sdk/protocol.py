"""Messages exchanged with the client and the in-process stream carrying them."""

from __future__ import annotations

import dataclasses
import enum
import queue
from dataclasses import dataclass, field
from datetime import datetime, timezone

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
DEFAULT_MAX_MESSAGE_SIZE = 1024 * 1024 * 64
DEFAULT_SERVER_INFO_FILE_PATH = "/var/run/numaflow/mapper-server-info"
DEFAULT_SOCK_ADDR = "/var/run/numaflow/map.sock"


@dataclass(frozen=True)
class Handshake:
    """Start-of-transmission marker."""

    sot: bool = False


@dataclass(frozen=True)
class TransmissionStatus:
    """End-of-transmission marker."""

    eot: bool = False


@dataclass
class Request:
    """Payload of a single map request."""

    keys: list[str] = field(default_factory=list)
    value: bytes = b""
    event_time: datetime = EPOCH
    watermark: datetime = EPOCH
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class MapRequest:
    """A message arriving on the map stream."""

    request: Request | None = None
    id: str = ""
    handshake: Handshake | None = None
    status: TransmissionStatus | None = None

    @property
    def is_handshake(self) -> bool:
        return self.handshake is not None and self.handshake.sot

    @property
    def is_eot(self) -> bool:
        return self.status is not None and self.status.eot


@dataclass
class Result:
    """One output message of a map response."""

    keys: list[str] = field(default_factory=list)
    value: bytes = b""
    tags: list[str] = field(default_factory=list)


@dataclass
class MapResponse:
    """A message sent back on the map stream."""

    results: list[Result] = field(default_factory=list)
    id: str = ""
    handshake: Handshake | None = None
    status: TransmissionStatus | None = None


@dataclass(frozen=True)
class ReadyResponse:
    """Answer to a readiness probe."""

    ready: bool = False


class StatusCode(enum.IntEnum):
    """RPC status codes."""

    OK = 0
    CANCELLED = 1
    UNKNOWN = 2
    INVALID_ARGUMENT = 3
    DEADLINE_EXCEEDED = 4
    NOT_FOUND = 5
    ALREADY_EXISTS = 6
    PERMISSION_DENIED = 7
    RESOURCE_EXHAUSTED = 8
    FAILED_PRECONDITION = 9
    ABORTED = 10
    OUT_OF_RANGE = 11
    UNIMPLEMENTED = 12
    INTERNAL = 13
    UNAVAILABLE = 14
    DATA_LOSS = 15
    UNAUTHENTICATED = 16

    @property
    def label(self) -> str:
        """Name of the code as shown in error descriptions."""
        if self is StatusCode.OK:
            return "OK"
        if self is StatusCode.CANCELLED:
            return "Canceled"
        return "".join(part.capitalize() for part in self.name.split("_"))


class StatusError(Exception):
    """An error carrying an RPC status code."""

    def __init__(self, code: StatusCode, message: str):
        super().__init__(code, message)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        return f"rpc error: code = {self.code.label} desc = {self.message}"


@dataclass(frozen=True)
class ServerOptions:
    """Settings for a map server."""

    sock_addr: str = DEFAULT_SOCK_ADDR
    max_message_size: int = DEFAULT_MAX_MESSAGE_SIZE
    server_info_file_path: str = DEFAULT_SERVER_INFO_FILE_PATH

    def with_max_message_size(self, size: int) -> ServerOptions:
        """Copy with the maximum send and receive message size changed."""
        return dataclasses.replace(self, max_message_size=size)

    def with_sock_addr(self, addr: str) -> ServerOptions:
        """Copy listening on a different socket address."""
        return dataclasses.replace(self, sock_addr=addr)

    def with_server_info_file_path(self, path: str) -> ServerOptions:
        """Copy writing the server info file to a different path."""
        return dataclasses.replace(self, server_info_file_path=path)


_END_OF_STREAM = object()


class MapStream:
    """In-process bidirectional stream of map requests and responses.

    The client side pushes requests and reads responses; the service side
    calls recv() and send().
    """

    def __init__(self, requests=()):
        self._inbound: queue.Queue = queue.Queue()
        self._outbound: queue.Queue = queue.Queue()
        for request in requests:
            self.push(request)

    def push(self, request: MapRequest) -> None:
        """Queue a request for the service."""
        self._inbound.put(request)

    def close_send(self) -> None:
        """Signal that the client will send no more requests."""
        self._inbound.put(_END_OF_STREAM)

    def recv(self) -> MapRequest:
        """Next request; raises EOFError once the client has closed its side."""
        item = self._inbound.get()
        if item is _END_OF_STREAM:
            self._inbound.put(_END_OF_STREAM)
            raise EOFError("stream closed by the client")
        return item

    def send(self, response: MapResponse) -> None:
        """Deliver a response to the client."""
        self._outbound.put(response)

    def receive_response(self, timeout: float | None = None) -> MapResponse:
        """Next response sent by the service; raises TimeoutError if none arrives."""
        try:
            return self._outbound.get(timeout=timeout)
        except queue.Empty:
            raise TimeoutError("no response received in time") from None

    def sent(self) -> list[MapResponse]:
        """Drain and return every response sent so far."""
        drained = []
        while True:
            try:
                drained.append(self._outbound.get_nowait())
            except queue.Empty:
                return drained