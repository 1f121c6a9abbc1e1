"""TCP connections with socket options, domain connectors and raw certificate loading."""

from __future__ import annotations

import abc
import asyncio
import copy
import logging
import os
import socket
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import BinaryIO, Optional, Tuple, Type, TypeVar, Union

__all__ = [
    "TCP_KEEPALIVE_TIME",
    "TCP_KEEPALIVE_INTERVAL",
    "TCP_KEEPALIVE_PROBES",
    "KeepaliveOpts",
    "SocketOpts",
    "stream",
    "stream_with_opts",
    "TcpDomainConnector",
    "DefaultTcpDomainConnector",
    "CertBuilder",
]

logger = logging.getLogger(__name__)

TCP_KEEPALIVE_TIME = timedelta(seconds=7200)
"""Idle time before the first keepalive probe is sent."""
TCP_KEEPALIVE_INTERVAL = timedelta(seconds=75)
"""Interval between unanswered keepalive probes."""
TCP_KEEPALIVE_PROBES = 9
"""Unanswered probes before the connection is considered dead."""

Address = Union[str, Tuple[str, int]]
Duration = Union[float, int, timedelta]
Connection = Tuple[asyncio.StreamReader, asyncio.StreamWriter]


@dataclass
class KeepaliveOpts:
    """TCP keepalive settings; a field of None leaves the system default."""

    time: Optional[Duration] = TCP_KEEPALIVE_TIME
    interval: Optional[Duration] = TCP_KEEPALIVE_INTERVAL
    retries: Optional[int] = TCP_KEEPALIVE_PROBES


@dataclass
class SocketOpts:
    """Options applied to a freshly connected socket; None leaves a setting alone."""

    nodelay: Optional[bool] = None
    keepalive: Optional[KeepaliveOpts] = field(default=None)


def _whole_seconds(duration: Duration) -> int:
    seconds = duration.total_seconds() if isinstance(duration, timedelta) else float(duration)
    if seconds < 0:
        raise ValueError("duration must not be negative")
    return max(1, int(seconds))


def _parse_addr(addr: Address) -> Tuple[str, int]:
    if isinstance(addr, tuple):
        host, port = addr
        return str(host), int(port)
    if addr.startswith("["):
        host, bracket, rest = addr[1:].partition("]")
        if not bracket or not rest.startswith(":"):
            raise ValueError(f"invalid socket address: {addr!r}")
        port_text = rest[1:]
    else:
        host, sep, port_text = addr.rpartition(":")
        if not sep or not host:
            raise ValueError(f"invalid socket address: {addr!r}")
    try:
        port = int(port_text)
    except ValueError:
        raise ValueError(f"invalid port in socket address: {addr!r}") from None
    if not 0 <= port <= 65535:
        raise ValueError(f"port out of range in socket address: {addr!r}")
    return host, port


def _idle_option() -> Optional[int]:
    return getattr(socket, "TCP_KEEPIDLE", None) or getattr(socket, "TCP_KEEPALIVE", None)


def _apply_socket_opts(sock: socket.socket, opts: SocketOpts) -> None:
    if opts.nodelay is not None:
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, int(opts.nodelay))
    keepalive = opts.keepalive
    if keepalive is None:
        return
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
    idle = _idle_option()
    if keepalive.time is not None and idle is not None:
        sock.setsockopt(socket.IPPROTO_TCP, idle, _whole_seconds(keepalive.time))
    interval = getattr(socket, "TCP_KEEPINTVL", None)
    if keepalive.interval is not None and interval is not None:
        sock.setsockopt(socket.IPPROTO_TCP, interval, _whole_seconds(keepalive.interval))
    count = getattr(socket, "TCP_KEEPCNT", None)
    if keepalive.retries is not None and count is not None:
        sock.setsockopt(socket.IPPROTO_TCP, count, int(keepalive.retries))


async def stream(addr: Address) -> Connection:
    """Connect to ``addr`` with default keepalive settings."""
    return await stream_with_opts(addr, SocketOpts(keepalive=KeepaliveOpts()))


async def stream_with_opts(addr: Address, socket_opts: Optional[SocketOpts]) -> Connection:
    """Connect to ``addr`` ("host:port" or a (host, port) pair) and apply ``socket_opts``."""
    logger.debug("socket opts: %r", socket_opts)
    host, port = _parse_addr(addr)
    reader, writer = await asyncio.open_connection(host, port)
    if socket_opts is not None:
        try:
            _apply_socket_opts(writer.get_extra_info("socket"), socket_opts)
        except BaseException:
            writer.close()
            raise
    return reader, writer


class TcpDomainConnector(abc.ABC):
    """Connects to an address and returns the write half, read half and descriptor."""

    @abc.abstractmethod
    async def connect(
        self, addr: str
    ) -> Tuple[asyncio.StreamWriter, asyncio.StreamReader, int]:
        """Open a connection to ``addr``."""

    @abc.abstractmethod
    def new_domain(self, domain: str) -> "TcpDomainConnector":
        """A connector like this one, for ``domain``."""

    @abc.abstractmethod
    def domain(self) -> str:
        """The domain this connector targets."""


class DefaultTcpDomainConnector(TcpDomainConnector):
    """Plain TCP connector."""

    async def connect(
        self, addr: str
    ) -> Tuple[asyncio.StreamWriter, asyncio.StreamReader, int]:
        logger.debug("connect to tcp addr: %s", addr)
        reader, writer = await stream(addr)
        fd = writer.get_extra_info("socket").fileno()
        return writer, reader, fd

    def new_domain(self, domain: str) -> "DefaultTcpDomainConnector":
        return copy.copy(self)

    def domain(self) -> str:
        return "localhost"


C = TypeVar("C", bound="CertBuilder")


class CertBuilder:
    """Holds the raw bytes of a certificate or key."""

    def __init__(self, data: bytes) -> None:
        self.data = bytes(data)

    @classmethod
    def from_reader(cls: Type[C], reader: BinaryIO) -> C:
        """Build from everything ``reader`` yields."""
        return cls(reader.read())

    @classmethod
    def from_path(cls: Type[C], path: Union[str, "os.PathLike[str]"]) -> C:
        """Build from the contents of the file at ``path``."""
        logger.debug("loading cert from: %s", path)
        with Path(path).open("rb") as reader:
            return cls.from_reader(reader)