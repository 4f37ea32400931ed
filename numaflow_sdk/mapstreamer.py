"""Streaming map: one input message in, output messages streamed back as they are produced."""

from __future__ import annotations

import abc
import logging
import threading
from collections.abc import Callable, Iterable, Iterator, Sequence

from .datum import Datum
from .message import Message
from .protocol import (
    MapRequest,
    MapResponse,
    ReadyResponse,
    ServerOptions,
    StatusCode,
    StatusError,
    TransmissionStatus,
)

logger = logging.getLogger(__name__)

UDS = "unix"
ADDRESS = "/var/run/numaflow/mapstream.sock"
DEFAULT_MAX_MESSAGE_SIZE = 1024 * 1024 * 64
SERVER_INFO_FILE_PATH = "/var/run/numaflow/mapper-server-info"


class MapStreamer(abc.ABC):
    """A user map-stream function: yields output messages for one datum."""

    @abc.abstractmethod
    def map_stream(self, keys: Sequence[str], datum: Datum) -> Iterable[Message]:
        """Process one incoming message, yielding results as they become available."""


class _FunctionMapStreamer(MapStreamer):
    def __init__(self, func: Callable[[Sequence[str], Datum], Iterable[Message]]):
        self._func = func

    def map_stream(self, keys, datum):
        return self._func(keys, datum)


def default_options() -> ServerOptions:
    """Server settings used by a map-stream server unless overridden."""
    return ServerOptions(
        sock_addr=ADDRESS,
        max_message_size=DEFAULT_MAX_MESSAGE_SIZE,
        server_info_file_path=SERVER_INFO_FILE_PATH,
    )


class _HandlerError(RuntimeError):
    """The user's map-stream function failed."""


class MapStreamService:
    """Serves a map stream, forwarding each produced message as soon as it is yielded."""

    def __init__(
        self,
        streamer: MapStreamer | Callable[[Sequence[str], Datum], Iterable[Message]],
    ):
        self.streamer = (
            streamer if isinstance(streamer, MapStreamer) else _FunctionMapStreamer(streamer)
        )
        self.shutdown_event = threading.Event()

    def is_ready(self) -> ReadyResponse:
        """Report that the service is ready."""
        return ReadyResponse(ready=True)

    def map_fn(self, stream) -> None:
        """Handle one stream: handshake, then stream results for each request until EOF."""
        self._perform_handshake(stream)
        while True:
            try:
                request = stream.recv()
            except EOFError:
                logger.info("EOF received, stopping the MapStreamFn")
                return
            except Exception as exc:
                logger.error("Failed to receive request: %s", exc)
                raise

            try:
                self._process(request, stream)
            except EOFError:
                logger.info("EOF while sending, stopping the MapStreamFn")
                return
            except Exception as exc:
                logger.error("error processing requests: %s", exc)
                self.shutdown_event.set()
                raise StatusError(
                    StatusCode.INTERNAL, f"error processing requests: {exc}"
                ) from exc

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

    def _messages(self, keys: list[str], datum: Datum) -> Iterator[Message]:
        try:
            yield from self.streamer.map_stream(keys, datum) or ()
        except Exception as exc:
            logger.exception("panic inside mapStream handler: %s", exc)
            raise _HandlerError(f"panic inside mapStream handler: {exc}") from exc

    def _process(self, request: MapRequest, stream) -> None:
        keys = list(request.request.keys) if request.request is not None else []
        datum = Datum.from_request(request)
        for message in self._messages(keys, datum):
            stream.send(MapResponse(results=[message.to_result()], id=request.id))
        stream.send(MapResponse(status=TransmissionStatus(eot=True), id=request.id))