"""PKCS#12 keystore decoding.

Turns an encrypted PKCS#12 container and its passphrase into a
CertificateBundle whose private key has been checked against the leaf.
"""

import logging

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.serialization import pkcs12
from opentelemetry import trace

from tlsidentity.errors import ContainerDecodeError, KeyPairMismatchError, LeafParseError
from tlsidentity.keystore.bundle import CertificateBundle, public_key_der

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class ContainerDecoder:
    """Decodes password-protected PKCS#12 containers.

    The decoder holds no state; a single instance may be shared between
    threads and used for concurrent decodes.
    """

    def decode(self, container: bytes, passphrase: str | bytes) -> CertificateBundle:
        """Decode a PKCS#12 container into a certificate bundle.

        Args:
            container: Raw PKCS#12 bytes.
            passphrase: Container password.

        Returns:
            CertificateBundle with the chain leaf first.

        Raises:
            ContainerDecodeError: Wrong passphrase, malformed data, unsupported
                encryption, or no key/certificate.
            KeyPairMismatchError: The private key does not match the leaf.
            LeafParseError: The leaf DER cannot be parsed.
        """
        with tracer.start_as_current_span("ContainerDecoder.decode") as span:
            span.set_attribute("container_size", len(container))

            if isinstance(passphrase, str):
                passphrase = passphrase.encode("utf-8")

            try:
                private_key, certificate, additional = pkcs12.load_key_and_certificates(
                    container, passphrase or None
                )
            except (ValueError, TypeError, UnsupportedAlgorithm) as e:
                raise ContainerDecodeError(f"Failed to decrypt keystore: {e}") from e

            if certificate is None:
                raise ContainerDecodeError("Keystore contains no certificate")
            if private_key is None:
                raise ContainerDecodeError("Keystore contains no private key")

            chain = tuple(
                cert.public_bytes(serialization.Encoding.DER)
                for cert in [certificate, *additional]
            )

            if public_key_der(private_key) != public_key_der(certificate):
                raise KeyPairMismatchError("Private key does not match leaf certificate")

            # Leaf metadata is parsed from the normalized DER, not reused from the container
            try:
                leaf = x509.load_der_x509_certificate(chain[0])
            except ValueError as e:
                raise LeafParseError(f"Failed to parse leaf certificate: {e}") from e

            span.set_attribute("chain_length", len(chain))
            span.set_attribute("serial", format(leaf.serial_number, "x"))

            logger.debug(
                "keystore_decoded",
                extra={"subject": leaf.subject.rfc4514_string(), "chain_length": len(chain)},
            )

            return CertificateBundle(chain=chain, private_key=private_key, leaf=leaf)
