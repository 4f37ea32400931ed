"""Server information shared between a user-defined function server and its client."""

from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import dataclass, field
from enum import Enum
from importlib import metadata
from pathlib import Path

logger = logging.getLogger(__name__)

END = "U+005C__END__"
MAP_MODE_KEY = "MAP_MODE"
DISTRIBUTION_NAME = "numaflow-sdk"


class Protocol(str, Enum):
    """Transport used by the server."""

    UDS = "uds"
    TCP = "tcp"


class Language(str, Enum):
    """Language the server is written in."""

    GO = "go"
    PYTHON = "python"


class ContainerType(str, Enum):
    """Kind of container; values match the server info file names."""

    SOURCER = "sourcer"
    SOURCETRANSFORMER = "sourcetransformer"
    SINKER = "sinker"
    MAPPER = "mapper"
    REDUCER = "reducer"
    REDUCESTREAMER = "reducestreamer"
    SESSIONREDUCER = "sessionreducer"
    SIDEINPUT = "sideinput"
    FBSINKER = "fb-sinker"


class MapMode(str, Enum):
    """Which map flavour a mapper server provides."""

    UNARY_MAP = "unary-map"
    STREAM_MAP = "stream-map"
    BATCH_MAP = "batch-map"


MINIMUM_NUMAFLOW_VERSION: dict[ContainerType, str] = {
    container: "1.3.1-z"
    for container in (
        ContainerType.SOURCER,
        ContainerType.SOURCETRANSFORMER,
        ContainerType.SINKER,
        ContainerType.MAPPER,
        ContainerType.REDUCESTREAMER,
        ContainerType.REDUCER,
        ContainerType.SESSIONREDUCER,
        ContainerType.SIDEINPUT,
        ContainerType.FBSINKER,
    )
}


class ServerInfoNotReadyError(RuntimeError):
    """The server info file exists but has not been completely written."""


def _raw(value):
    return value.value if isinstance(value, Enum) else value


def _as_enum(enum_type, value):
    try:
        return enum_type(value)
    except ValueError:
        return value


@dataclass
class ServerInfo:
    """Information a server publishes about itself."""

    protocol: Protocol | str = Protocol.UDS
    language: Language | str = Language.PYTHON
    minimum_numaflow_version: str = ""
    version: str = ""
    metadata: dict[str, str] | None = field(default=None)

    def to_json(self) -> str:
        """Serialise to the compact JSON form written to the info file."""
        return json.dumps(
            {
                "protocol": _raw(self.protocol),
                "language": _raw(self.language),
                "minimum_numaflow_version": self.minimum_numaflow_version,
                "version": self.version,
                "metadata": self.metadata,
            },
            separators=(",", ":"),
        )

    @classmethod
    def from_json(cls, text) -> ServerInfo:
        """Parse the JSON form; missing fields take their defaults."""
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError("server info must be a JSON object")
        return cls(
            protocol=_as_enum(Protocol, data.get("protocol", "")),
            language=_as_enum(Language, data.get("language", "")),
            minimum_numaflow_version=data.get("minimum_numaflow_version", ""),
            version=data.get("version", ""),
            metadata=data.get("metadata"),
        )


def get_sdk_version() -> str:
    """Installed version of this SDK, or an empty string if unknown."""
    try:
        return metadata.version(DISTRIBUTION_NAME)
    except metadata.PackageNotFoundError:
        return ""


def get_default_server_info() -> ServerInfo:
    """A ServerInfo with the SDK's default fields filled in."""
    return ServerInfo(
        protocol=Protocol.UDS,
        language=Language.PYTHON,
        version=get_sdk_version(),
    )


def write(server_info: ServerInfo, path: str | os.PathLike) -> None:
    """Write the server info to ``path``, replacing any existing file."""
    target = Path(path)
    target.unlink(missing_ok=True)
    with target.open("w", encoding="utf-8") as handle:
        handle.write(server_info.to_json())
        handle.write(END)


def read(path: str | os.PathLike, retries: int = 10, interval: float = 0.1) -> ServerInfo:
    """Read the server info, waiting briefly for the writer to finish."""
    target = Path(path)
    content = target.read_text(encoding="utf-8")
    attempts = 0
    while not content.endswith(END) and attempts < retries:
        time.sleep(interval)
        content = target.read_text(encoding="utf-8")
        attempts += 1
    if not content.endswith(END):
        raise ServerInfoNotReadyError("server info file is not ready")
    try:
        return ServerInfo.from_json(content[: -len(END)])
    except ValueError as exc:
        raise ValueError(f"failed to unmarshal server info: {exc}") from exc


def wait_until_ready(
    path: str | os.PathLike, timeout: float | None = None, interval: float = 1.0
) -> None:
    """Block until the server info file exists and is non-empty.

    Raises TimeoutError if ``timeout`` seconds pass first.
    """
    deadline = None if timeout is None else time.monotonic() + timeout
    target = Path(path)
    while True:
        if deadline is not None and time.monotonic() >= deadline:
            raise TimeoutError(f"server info file {target} was not ready in time")
        try:
            if target.stat().st_size > 0:
                return
        except OSError:
            logger.info("Server info file %s is not ready...", target)
        pause = interval
        if deadline is not None:
            pause = max(0.0, min(interval, deadline - time.monotonic()))
        time.sleep(pause)