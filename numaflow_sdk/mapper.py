"""Unary map: one input message in, a list of output messages back."""

from __future__ import annotations

import abc
import logging
import queue
import threading
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor

from .datum import Datum
from .message import Message
from .protocol import (
    MapRequest,
    MapResponse,
    ReadyResponse,
    ServerOptions,
    StatusCode,
    StatusError,
)

logger = logging.getLogger(__name__)

UDS = "unix"
ADDRESS = "/var/run/numaflow/map.sock"
DEFAULT_MAX_MESSAGE_SIZE = 1024 * 1024 * 64
SERVER_INFO_FILE_PATH = "/var/run/numaflow/mapper-server-info"

_POLL_INTERVAL = 0.05


class Mapper(abc.ABC):
    """A user map function: turns one datum into zero or more messages."""

    @abc.abstractmethod
    def map(self, keys: Sequence[str], datum: Datum) -> Iterable[Message]:
        """Process one incoming message."""


class _FunctionMapper(Mapper):
    def __init__(self, func: Callable[[Sequence[str], Datum], Iterable[Message]]):
        self._func = func

    def map(self, keys, datum):
        return self._func(keys, datum)


def default_options() -> ServerOptions:
    """Server settings used by a map server unless overridden."""
    return ServerOptions(
        sock_addr=ADDRESS,
        max_message_size=DEFAULT_MAX_MESSAGE_SIZE,
        server_info_file_path=SERVER_INFO_FILE_PATH,
    )


class _FirstError:
    """Keeps the first error reported by any worker and flags cancellation."""

    def __init__(self):
        self._lock = threading.Lock()
        self.error: BaseException | None = None
        self.cancelled = threading.Event()

    def record(self, error: BaseException) -> None:
        with self._lock:
            if self.error is None:
                self.error = error
        self.cancelled.set()


def _pump(stream, incoming: queue.Queue, stop: threading.Event) -> None:
    """Read requests from the stream into ``incoming`` until an error or stop."""
    while not stop.is_set():
        try:
            request = stream.recv()
        except BaseException as exc:  # noqa: BLE001 - forwarded to the reader loop
            incoming.put((False, exc))
            return
        incoming.put((True, request))


class MapService:
    """Serves a map stream by applying a mapper to every request concurrently."""

    def __init__(self, mapper: Mapper | Callable[[Sequence[str], Datum], Iterable[Message]]):
        self.mapper = mapper if isinstance(mapper, Mapper) else _FunctionMapper(mapper)
        self.shutdown_event = threading.Event()

    def is_ready(self) -> ReadyResponse:
        """Report that the service is ready."""
        return ReadyResponse(ready=True)

    def map_fn(self, stream) -> None:
        """Handle one stream: handshake, then answer each request until the client closes."""
        self._perform_handshake(stream)

        errors = _FirstError()
        send_lock = threading.Lock()
        incoming: queue.Queue = queue.Queue()
        stop_reading = threading.Event()
        reader = threading.Thread(
            target=_pump, args=(stream, incoming, stop_reading), daemon=True
        )
        reader.start()

        read_error: BaseException | None = None
        with ThreadPoolExecutor(thread_name_prefix="map-handler") as pool:
            while True:
                if errors.cancelled.is_set():
                    logger.info("Context cancelled, stopping the MapFn")
                    break
                try:
                    ok, item = incoming.get(timeout=_POLL_INTERVAL)
                except queue.Empty:
                    continue
                if ok:
                    pool.submit(self._handle_request, item, stream, send_lock, errors)
                    continue
                if isinstance(item, EOFError):
                    logger.info("EOF received, stopping the MapFn")
                else:
                    logger.error("Failed to receive request: %s", item)
                    read_error = item
                    errors.cancelled.set()
                break
        stop_reading.set()

        if errors.error is not None:
            logger.error("Stopping the MapFn with err, %s", errors.error)
            self.shutdown_event.set()
            raise StatusError(
                StatusCode.INTERNAL, f"error processing requests: {errors.error}"
            ) from errors.error
        if read_error is not None:
            raise StatusError(StatusCode.INTERNAL, str(read_error)) from read_error

    def _perform_handshake(self, stream) -> None:
        try:
            request = stream.recv()
        except Exception as exc:
            raise StatusError(
                StatusCode.INTERNAL, f"failed to receive handshake: {exc}"
            ) from exc
        if not request.is_handshake:
            raise StatusError(StatusCode.INVALID_ARGUMENT, "invalid handshake")
        try:
            stream.send(MapResponse(handshake=request.handshake))
        except Exception as exc:
            raise RuntimeError(
                f"sending handshake response to client over the stream: {exc}"
            ) from exc

    def _apply(self, request: MapRequest) -> MapResponse:
        keys = list(request.request.keys) if request.request is not None else []
        datum = Datum.from_request(request)
        messages = self.mapper.map(keys, datum)
        return MapResponse(
            results=[message.to_result() for message in messages or ()],
            id=request.id,
        )

    def _handle_request(self, request, stream, send_lock, errors: _FirstError) -> None:
        try:
            response = self._apply(request)
        except Exception as exc:
            logger.exception("panic inside map handler: %s", exc)
            errors.record(
                StatusError(StatusCode.INTERNAL, f"panic inside map handler: {exc}")
            )
            return
        if errors.cancelled.is_set():
            return
        try:
            with send_lock:
                stream.send(response)
        except Exception as exc:
            logger.error("Failed to send response: %s", exc)
            errors.record(exc)