"""X.509 certificates and private keys loaded from PEM or DER."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from cryptography import x509
from cryptography.hazmat.primitives import serialization

__all__ = ["Certificate", "PrivateKey"]


@dataclass(frozen=True)
class Certificate:
    """An X.509 certificate."""

    inner: x509.Certificate

    @classmethod
    def from_pem(cls, data: bytes) -> "Certificate":
        """Parse a PEM certificate; raises ValueError on bad input."""
        return cls(x509.load_pem_x509_certificate(bytes(data)))

    @classmethod
    def from_der(cls, data: bytes) -> "Certificate":
        """Parse a DER certificate; raises ValueError on bad input."""
        return cls(x509.load_der_x509_certificate(bytes(data)))

    def to_der(self) -> bytes:
        return self.inner.public_bytes(serialization.Encoding.DER)


@dataclass(frozen=True)
class PrivateKey:
    """An unencrypted private key."""

    inner: Any

    @classmethod
    def from_pem(cls, data: bytes) -> "PrivateKey":
        """Parse an unencrypted PEM private key; raises ValueError on bad input."""
        return cls(serialization.load_pem_private_key(bytes(data), None))