"""TLS over asyncio streams: PEM loading, connector and acceptor builders, domain connectors."""

from __future__ import annotations

import asyncio
import base64
import binascii
import contextlib
import copy
import enum
import ipaddress
import logging
import os
import re
import ssl
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, List, Tuple, TypeVar, Union

from cryptography import x509
from cryptography.hazmat.primitives import serialization

from . import net
from .net import TcpDomainConnector

__all__ = [
    "load_certs",
    "load_certs_from_reader",
    "load_keys",
    "load_keys_from_reader",
    "load_root_ca",
    "TlsStream",
    "TlsConnector",
    "TlsAcceptor",
    "ConnectorBuilder",
    "AcceptorBuilder",
    "TlsAnonymousConnector",
    "TlsDomainConnector",
]

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]
T = TypeVar("T")

_PEM_BLOCK = re.compile(r"-----BEGIN ([A-Z0-9 ]+)-----(.*?)-----END \1-----", re.S)
_DNS_NAME = re.compile(
    r"^(?=.{1,253}$)[A-Za-z0-9_](?:[A-Za-z0-9_-]{0,61}[A-Za-z0-9_])?"
    r"(?:\.[A-Za-z0-9_](?:[A-Za-z0-9_-]{0,61}[A-Za-z0-9_])?)*\.?$"
)
_READ_CHUNK = 65536


def _pem_blocks(data: Union[bytes, str], label: str, what: str) -> List[bytes]:
    text = data.decode("latin-1") if isinstance(data, (bytes, bytearray)) else data
    blocks = []
    for match in _PEM_BLOCK.finditer(text):
        if match.group(1) != label:
            continue
        body = "".join(match.group(2).split())
        try:
            blocks.append(base64.b64decode(body, validate=True))
        except (binascii.Error, ValueError) as err:
            raise ValueError(what) from err
    return blocks


def load_certs_from_reader(reader: Any) -> List[bytes]:
    """DER bytes of every CERTIFICATE block that ``reader`` yields."""
    return _pem_blocks(reader.read(), "CERTIFICATE", "invalid cert")


def load_certs(path: PathLike) -> List[bytes]:
    """DER bytes of every certificate in the PEM file at ``path``."""
    with Path(path).open("rb") as reader:
        return load_certs_from_reader(reader)


def load_keys_from_reader(reader: Any) -> List[bytes]:
    """DER bytes of every PKCS#8 PRIVATE KEY block that ``reader`` yields."""
    return _pem_blocks(reader.read(), "PRIVATE KEY", "invalid key")


def load_keys(path: PathLike) -> List[bytes]:
    """DER bytes of every PKCS#8 private key in the PEM file at ``path``."""
    with Path(path).open("rb") as reader:
        return load_keys_from_reader(reader)


def _first_key(keys: List[bytes]) -> bytes:
    if not keys:
        raise ValueError("no keys found")
    return keys[0]


def _validated_roots(certs: List[bytes]) -> List[bytes]:
    for der in certs:
        try:
            x509.load_der_x509_certificate(der)
        except ValueError as err:
            raise ValueError("invalid ca crt") from err
    return certs


def load_root_ca(path: PathLike) -> List[bytes]:
    """Certificates from ``path`` checked as trust anchors; raises ValueError if malformed."""
    try:
        certs = load_certs(path)
    except ValueError as err:
        raise ValueError("invalid ca crt") from err
    return _validated_roots(certs)


def _load_chain(context: ssl.SSLContext, certs: List[bytes], key: bytes) -> None:
    try:
        cert_pem = b"".join(
            x509.load_der_x509_certificate(der).public_bytes(serialization.Encoding.PEM)
            for der in certs
        )
        key_pem = serialization.load_der_private_key(key, None).private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
    except (ValueError, TypeError) as err:
        raise ValueError("invalid cert") from err
    handle, chain_path = tempfile.mkstemp(suffix=".pem")
    try:
        with os.fdopen(handle, "wb") as chain_file:
            chain_file.write(cert_pem + key_pem)
        context.load_cert_chain(chain_path)
    except ssl.SSLError as err:
        raise ValueError("invalid cert") from err
    finally:
        os.unlink(chain_path)


def _check_server_name(name: str) -> str:
    try:
        ipaddress.ip_address(name)
        return name
    except ValueError:
        pass
    if not _DNS_NAME.match(name):
        raise ValueError(f"Invalid Dns Name: {name!r}")
    return name


def _host_of(addr: str) -> str:
    if addr.startswith("["):
        return addr[1:].partition("]")[0]
    if addr.count(":") == 1:
        return addr.rpartition(":")[0]
    return addr


class TlsStream:
    """An established TLS session over an asyncio reader/writer pair."""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        context: ssl.SSLContext,
        server_side: bool,
        server_hostname: Union[str, None] = None,
    ) -> None:
        self._reader = reader
        self._writer = writer
        self._incoming = ssl.MemoryBIO()
        self._outgoing = ssl.MemoryBIO()
        self._sslobj = context.wrap_bio(
            self._incoming,
            self._outgoing,
            server_side=server_side,
            server_hostname=server_hostname,
        )
        self._eof = False
        self._read_lock = asyncio.Lock()
        self._write_lock = asyncio.Lock()

    async def _flush(self) -> None:
        async with self._write_lock:
            data = self._outgoing.read()
            if data:
                self._writer.write(data)
                await self._writer.drain()

    async def _fill(self) -> None:
        async with self._read_lock:
            if self._eof:
                raise ConnectionResetError("connection closed during TLS exchange")
            data = await self._reader.read(_READ_CHUNK)
            if data:
                self._incoming.write(data)
            else:
                self._eof = True
                self._incoming.write_eof()

    async def _call(self, func: Callable[..., T], *args: Any) -> T:
        while True:
            try:
                result = func(*args)
            except ssl.SSLWantReadError:
                await self._flush()
                await self._fill()
                continue
            except ssl.SSLWantWriteError:
                await self._flush()
                continue
            except ssl.SSLError:
                with contextlib.suppress(OSError):
                    await self._flush()
                raise
            await self._flush()
            return result

    async def _handshake(self) -> None:
        await self._call(self._sslobj.do_handshake)

    async def read(self, size: int = _READ_CHUNK) -> bytes:
        """Read up to ``size`` decrypted bytes; b"" at the end of the session."""
        try:
            return await self._call(self._sslobj.read, size)
        except (ssl.SSLZeroReturnError, ssl.SSLEOFError):
            return b""

    async def write(self, data: bytes) -> None:
        """Encrypt and send every byte of ``data``."""
        remaining = memoryview(data).cast("B")
        while remaining:
            written = await self._call(self._sslobj.write, remaining)
            remaining = remaining[written:]

    def fileno(self) -> int:
        return self._writer.get_extra_info("socket").fileno()

    def peer_certificate(self) -> Union[bytes, None]:
        """DER bytes of the peer's certificate, if it sent one."""
        return self._sslobj.getpeercert(binary_form=True)

    async def close(self) -> None:
        """Send close_notify and close the underlying connection."""
        with contextlib.suppress(ssl.SSLError):
            self._sslobj.unwrap()
        with contextlib.suppress(OSError):
            await self._flush()
        self._writer.close()
        with contextlib.suppress(OSError):
            await self._writer.wait_closed()

    async def __aenter__(self) -> "TlsStream":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()


@dataclass(frozen=True)
class TlsConnector:
    """Client side of TLS: connects and performs the handshake."""

    context: ssl.SSLContext

    async def connect(self, addr: str, server_hostname: str) -> TlsStream:
        """Connect to ``addr`` and complete a handshake for ``server_hostname``."""
        _check_server_name(server_hostname)
        reader, writer = await net.stream(addr)
        tls = TlsStream(reader, writer, self.context, False, server_hostname)
        try:
            await tls._handshake()
        except BaseException:
            writer.close()
            with contextlib.suppress(OSError):
                await writer.wait_closed()
            raise
        return tls


@dataclass(frozen=True)
class TlsAcceptor:
    """Server side of TLS: performs the handshake on an accepted connection."""

    context: ssl.SSLContext

    async def accept(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> TlsStream:
        """Complete a server handshake over ``reader``/``writer``."""
        tls = TlsStream(reader, writer, self.context, True)
        await tls._handshake()
        return tls


class _ConnectorStage(enum.Enum):
    WANTS_VERIFIER = enum.auto()
    WANTS_CLIENT_CERT = enum.auto()
    CONFIGURED = enum.auto()


class ConnectorBuilder:
    """Builds a TlsConnector: choose verification, then client authentication."""

    def __init__(self, context: ssl.SSLContext) -> None:
        self._context = context
        self._stage = _ConnectorStage.WANTS_VERIFIER

    @classmethod
    def with_safe_defaults(cls) -> "ConnectorBuilder":
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        context.minimum_version = ssl.TLSVersion.TLSv1_2
        return cls(context)

    def _expect(self, stage: _ConnectorStage, action: str) -> None:
        if self._stage is not stage:
            raise RuntimeError(f"cannot {action} at this stage of the connector builder")

    def _with_root_certificates(self, certs: List[bytes]) -> "ConnectorBuilder":
        roots = _validated_roots(certs)
        if roots:
            try:
                self._context.load_verify_locations(cadata=b"".join(roots))
            except ssl.SSLError as err:
                raise ValueError("invalid ca crt") from err
        self._stage = _ConnectorStage.WANTS_CLIENT_CERT
        return self

    def load_ca_cert(self, path: PathLike) -> "ConnectorBuilder":
        """Trust the certificates in the PEM file at ``path``."""
        self._expect(_ConnectorStage.WANTS_VERIFIER, "load a CA certificate")
        return self._with_root_certificates(load_certs(path))

    def load_ca_cert_from_bytes(self, buffer: bytes) -> "ConnectorBuilder":
        """Trust the certificates in the PEM ``buffer``."""
        self._expect(_ConnectorStage.WANTS_VERIFIER, "load a CA certificate")
        return self._with_root_certificates(_pem_blocks(buffer, "CERTIFICATE", "invalid cert"))

    def no_cert_verification(self) -> "ConnectorBuilder":
        """Accept any server certificate and send none of our own."""
        self._expect(_ConnectorStage.WANTS_VERIFIER, "disable verification")
        self._context.check_hostname = False
        self._context.verify_mode = ssl.CERT_NONE
        logger.info("server certificates will not be verified")
        self._stage = _ConnectorStage.CONFIGURED
        return self

    def load_client_certs(self, cert_path: PathLike, key_path: PathLike) -> "ConnectorBuilder":
        """Authenticate with the certificates and first PKCS#8 key from these files."""
        self._expect(_ConnectorStage.WANTS_CLIENT_CERT, "load client certificates")
        certs = load_certs(cert_path)
        key = _first_key(load_keys(key_path))
        _load_chain(self._context, certs, key)
        self._stage = _ConnectorStage.CONFIGURED
        return self

    def load_client_certs_from_bytes(self, cert_buf: bytes, key_buf: bytes) -> "ConnectorBuilder":
        """Authenticate with the certificates and first PKCS#8 key from PEM buffers."""
        self._expect(_ConnectorStage.WANTS_CLIENT_CERT, "load client certificates")
        certs = _pem_blocks(cert_buf, "CERTIFICATE", "invalid cert")
        key = _first_key(_pem_blocks(key_buf, "PRIVATE KEY", "invalid key"))
        _load_chain(self._context, certs, key)
        self._stage = _ConnectorStage.CONFIGURED
        return self

    def no_client_auth(self) -> "ConnectorBuilder":
        self._expect(_ConnectorStage.WANTS_CLIENT_CERT, "skip client authentication")
        self._stage = _ConnectorStage.CONFIGURED
        return self

    def build(self) -> TlsConnector:
        self._expect(_ConnectorStage.CONFIGURED, "build")
        return TlsConnector(self._context)


class _AcceptorStage(enum.Enum):
    WANTS_VERIFIER = enum.auto()
    WANTS_SERVER_CERT = enum.auto()
    CONFIGURED = enum.auto()


class AcceptorBuilder:
    """Builds a TlsAcceptor: choose client authentication, then server certificates."""

    def __init__(self, context: ssl.SSLContext) -> None:
        self._context = context
        self._stage = _AcceptorStage.WANTS_VERIFIER

    @classmethod
    def with_safe_defaults(cls) -> "AcceptorBuilder":
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        context.minimum_version = ssl.TLSVersion.TLSv1_2
        return cls(context)

    def _expect(self, stage: _AcceptorStage, action: str) -> None:
        if self._stage is not stage:
            raise RuntimeError(f"cannot {action} at this stage of the acceptor builder")

    def no_client_authentication(self) -> "AcceptorBuilder":
        """Require no client authentication."""
        self._expect(_AcceptorStage.WANTS_VERIFIER, "choose client authentication")
        self._context.verify_mode = ssl.CERT_NONE
        self._stage = _AcceptorStage.WANTS_SERVER_CERT
        return self

    def client_authenticate(self, path: PathLike) -> "AcceptorBuilder":
        """Require client certificates issued by the CA in the PEM file at ``path``."""
        self._expect(_AcceptorStage.WANTS_VERIFIER, "choose client authentication")
        roots = load_root_ca(path)
        if not roots:
            raise ValueError("invalid verifier")
        try:
            self._context.load_verify_locations(cadata=b"".join(roots))
        except ssl.SSLError as err:
            raise ValueError("invalid verifier") from err
        self._context.verify_mode = ssl.CERT_REQUIRED
        self._stage = _AcceptorStage.WANTS_SERVER_CERT
        return self

    def load_server_certs(self, cert_path: PathLike, key_path: PathLike) -> "AcceptorBuilder":
        """Serve the certificates and first PKCS#8 key from these files."""
        self._expect(_AcceptorStage.WANTS_SERVER_CERT, "load server certificates")
        certs = load_certs(cert_path)
        key = _first_key(load_keys(key_path))
        _load_chain(self._context, certs, key)
        self._stage = _AcceptorStage.CONFIGURED
        return self

    def build(self) -> TlsAcceptor:
        self._expect(_AcceptorStage.CONFIGURED, "build")
        return TlsAcceptor(self._context)


Connection = Tuple[TlsStream, TlsStream, int]


class TlsAnonymousConnector(TcpDomainConnector):
    """Connects with TLS, naming the server by the host part of the address."""

    def __init__(self, connector: TlsConnector) -> None:
        self._connector = connector

    async def connect(self, domain: str) -> Connection:
        server_name = _check_server_name(_host_of(domain))
        tls = await self._connector.connect(domain, server_name)
        return tls, tls, tls.fileno()

    def new_domain(self, domain: str) -> "TlsAnonymousConnector":
        return copy.copy(self)

    def domain(self) -> str:
        return "localhost"


class TlsDomainConnector(TcpDomainConnector):
    """Connects with TLS to any address, verifying the server as ``domain``."""

    def __init__(self, connector: TlsConnector, domain: str) -> None:
        self._connector = connector
        self._domain = domain

    async def connect(self, addr: str) -> Connection:
        logger.debug("connect to tls addr: %s, domain: %s", addr, self._domain)
        server_name = _check_server_name(self._domain)
        tls = await self._connector.connect(addr, server_name)
        return tls, tls, tls.fileno()

    def new_domain(self, domain: str) -> "TlsDomainConnector":
        other = copy.copy(self)
        other._domain = domain
        return other

    def domain(self) -> str:
        return self._domain