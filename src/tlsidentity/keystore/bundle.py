"""Immutable certificate bundle served to TLS handshakes."""

import hashlib
from dataclasses import dataclass, field
from datetime import datetime

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes
from cryptography.x509.oid import NameOID


def compute_thumbprint(der: bytes) -> str:
    """Compute the lowercase hex SHA-256 thumbprint of a DER certificate."""
    return hashlib.sha256(der).hexdigest().lower()


def public_key_der(key: PrivateKeyTypes | x509.Certificate) -> bytes:
    """Encode the public half of a private key or certificate as SubjectPublicKeyInfo."""
    return key.public_key().public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


@dataclass(frozen=True)
class CertificateBundle:
    """A certificate chain, its private key and the parsed leaf.

    The chain is DER encoded with the leaf first. Instances are only built by
    ContainerDecoder after the key has been checked against the leaf, and are
    never mutated afterwards, so a reference to one can be published and read
    without locking.
    """

    chain: tuple[bytes, ...]
    private_key: PrivateKeyTypes = field(repr=False)
    leaf: x509.Certificate = field(repr=False)

    def __post_init__(self) -> None:
        if not self.chain:
            raise ValueError("Certificate chain must not be empty")

    @property
    def subject(self) -> str:
        return self.leaf.subject.rfc4514_string()

    @property
    def issuer(self) -> str:
        return self.leaf.issuer.rfc4514_string()

    @property
    def common_name(self) -> str | None:
        """Leaf subject CN, or None when the subject has no CN."""
        attributes = self.leaf.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
        if not attributes:
            return None
        value = attributes[0].value
        return value if isinstance(value, str) else value.decode("utf-8")

    @property
    def serial_number(self) -> int:
        return self.leaf.serial_number

    @property
    def not_before(self) -> datetime:
        return self.leaf.not_valid_before_utc

    @property
    def not_after(self) -> datetime:
        return self.leaf.not_valid_after_utc

    @property
    def thumbprint(self) -> str:
        return compute_thumbprint(self.chain[0])

    def key_matches_leaf(self) -> bool:
        """Check that the private key corresponds to the leaf public key."""
        return public_key_der(self.private_key) == public_key_der(self.leaf)

    def chain_pem(self) -> bytes:
        """Render the chain as concatenated PEM certificates, leaf first."""
        return b"".join(
            x509.load_der_x509_certificate(der).public_bytes(serialization.Encoding.PEM)
            for der in self.chain
        )

    def encrypted_private_key_pem(self, password: bytes) -> bytes:
        """Render the private key as encrypted PKCS#8 PEM."""
        return self.private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.BestAvailableEncryption(password),
        )
