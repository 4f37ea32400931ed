"""Batch map: a whole batch of input messages in, one response per input back."""

from __future__ import annotations

import abc
import logging
import threading
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field

from .datum import Datum
from .message import Message
from .protocol import (
    MapResponse,
    ReadyResponse,
    ServerOptions,
    TransmissionStatus,
)

logger = logging.getLogger(__name__)

UDS = "unix"
ADDRESS = "/var/run/numaflow/batchmap.sock"
DEFAULT_MAX_MESSAGE_SIZE = 1024 * 1024 * 64
SERVER_INFO_FILE_PATH = "/var/run/numaflow/mapper-server-info"


@dataclass
class BatchResponse:
    """The output messages for one input request, referenced by its id."""

    id: str
    messages: list[Message] = field(default_factory=list)

    def append(self, message: Message) -> BatchResponse:
        """Add a message and return this response, so calls can be chained."""
        self.messages.append(message)
        return self


class BatchMapper(abc.ABC):
    """A user batch map function: consumes a batch of datums, returns their responses."""

    @abc.abstractmethod
    def batch_map(self, datums: Iterator[Datum]) -> Iterable[BatchResponse]:
        """Process every datum of the batch and return one response per datum."""


class _FunctionBatchMapper(BatchMapper):
    def __init__(self, func: Callable[[Iterator[Datum]], Iterable[BatchResponse]]):
        self._func = func

    def batch_map(self, datums):
        return self._func(datums)


def default_options() -> ServerOptions:
    """Server settings used by a batch map server unless overridden."""
    return ServerOptions(
        sock_addr=ADDRESS,
        max_message_size=DEFAULT_MAX_MESSAGE_SIZE,
        server_info_file_path=SERVER_INFO_FILE_PATH,
    )


class _HandlerError(RuntimeError):
    """The user's batch map function failed."""


class _BatchReader:
    """Yields the datums of one batch, stopping at end of transmission or end of stream."""

    def __init__(self, stream):
        self._stream = stream
        self.eof = False
        self.error: BaseException | None = None
        self.done = False

    def __iter__(self) -> Iterator[Datum]:
        while not self.done:
            try:
                request = self._stream.recv()
            except EOFError:
                logger.info("EOF received, stopping the MapBatchFn")
                self.eof = True
                self.done = True
                return
            except Exception as exc:
                logger.error("error receiving from batch map stream: %s", exc)
                self.error = exc
                self.done = True
                return
            if request.is_eot:
                self.done = True
                return
            yield Datum.from_request(request)

    def drain(self) -> None:
        for _ in self:
            pass


class BatchMapService:
    """Serves a map stream in batches delimited by end-of-transmission markers."""

    def __init__(
        self,
        batch_mapper: BatchMapper | Callable[[Iterator[Datum]], Iterable[BatchResponse]],
    ):
        self.batch_mapper = (
            batch_mapper
            if isinstance(batch_mapper, BatchMapper)
            else _FunctionBatchMapper(batch_mapper)
        )
        self.shutdown_event = threading.Event()

    def is_ready(self) -> ReadyResponse:
        """Report that the service is ready."""
        return ReadyResponse(ready=True)

    def map_fn(self, stream) -> None:
        """Handle one stream: handshake, then process batches until the client closes."""
        self._perform_handshake(stream)
        while True:
            try:
                finished = self._process_batch(stream)
            except Exception as exc:
                logger.error("Stopping the BatchMapFn with err, %s", exc)
                self.shutdown_event.set()
                raise
            if finished:
                logger.info("Stopping the BatchMapFn")
                return

    def _perform_handshake(self, stream) -> None:
        try:
            request = stream.recv()
        except Exception as exc:
            logger.error("error receiving handshake from stream: %s", exc)
            raise
        if not request.is_handshake:
            raise ValueError("expected handshake message")
        stream.send(MapResponse(handshake=request.handshake))

    def _process_batch(self, stream) -> bool:
        """Run one batch; returns True once the client has closed the stream."""
        reader = _BatchReader(stream)
        try:
            responses = list(self.batch_mapper.batch_map(iter(reader)) or ())
        except Exception as exc:
            logger.exception("panic inside batch map handler: %s", exc)
            raise _HandlerError(f"panic inside batch map handler: {exc}") from exc
        reader.drain()
        if reader.eof:
            return True
        if reader.error is not None:
            raise reader.error

        for batch in responses:
            response = MapResponse(
                results=[message.to_result() for message in batch.messages],
                id=batch.id,
            )
            try:
                stream.send(response)
            except Exception as exc:
                logger.error("BatchMapFn: Got an error while Send() on stream %s", exc)
                raise

        try:
            stream.send(MapResponse(status=TransmissionStatus(eot=True)))
        except Exception as exc:
            logger.error("BatchMapFn: Got an error while Send() on stream %s", exc)
        return False