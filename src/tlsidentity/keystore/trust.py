"""Trust bundle loading for client certificate verification."""

import logging
import re
import ssl
from dataclasses import dataclass
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from opentelemetry import trace

from tlsidentity.errors import FileReadError, PlatformTrustStoreError, TrustBundleEmptyError
from tlsidentity.metrics import tls_metrics

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

_PEM_CERTIFICATE = re.compile(
    rb"-----BEGIN CERTIFICATE-----\r?\n.+?\r?\n-----END CERTIFICATE-----",
    re.DOTALL,
)


@dataclass(frozen=True)
class TrustBundle:
    """Unordered set of trusted root certificates."""

    certificates: frozenset[x509.Certificate]
    source: str

    def __len__(self) -> int:
        return len(self.certificates)

    def pem(self) -> str:
        """Render the bundle as concatenated PEM for SSLContext.load_verify_locations."""
        return "".join(
            cert.public_bytes(serialization.Encoding.PEM).decode("ascii")
            for cert in self.certificates
        )


def parse_pem_certificates(data: bytes) -> list[x509.Certificate]:
    """Extract every parseable PEM certificate from data.

    Blocks that fail to parse are skipped rather than failing the whole set.
    """
    certificates = []
    for block in _PEM_CERTIFICATE.findall(data):
        try:
            certificates.append(x509.load_pem_x509_certificate(block))
        except ValueError:
            logger.debug("trust_bundle_block_skipped")
    return certificates


class TrustBundleLoader:
    """Loads trusted roots from a PEM file or the platform trust store."""

    PLATFORM_SOURCE = "platform"

    def load(self, path: str | Path | None) -> TrustBundle:
        """Load a trust bundle.

        Args:
            path: PEM bundle path. Empty or None selects the platform trust store.

        Returns:
            TrustBundle with at least one certificate.

        Raises:
            FileReadError: The bundle file cannot be read.
            TrustBundleEmptyError: The file contains no valid certificate.
            PlatformTrustStoreError: No platform trust store is available.
        """
        with tracer.start_as_current_span("TrustBundleLoader.load") as span:
            if not path:
                span.set_attribute("source", self.PLATFORM_SOURCE)
                bundle = self._load_platform()
                tls_metrics.record_trust_bundle_loaded("platform")
            else:
                span.set_attribute("source", str(path))
                bundle = self._load_file(Path(path))
                tls_metrics.record_trust_bundle_loaded("file")

            span.set_attribute("certificate_count", len(bundle))
            logger.info(
                "trust_bundle_loaded",
                extra={"source": bundle.source, "certificate_count": len(bundle)},
            )
            return bundle

    def _load_file(self, path: Path) -> TrustBundle:
        try:
            data = path.read_bytes()
        except OSError as e:
            raise FileReadError(str(path), e.strerror or str(e)) from e

        certificates = parse_pem_certificates(data)
        if not certificates:
            raise TrustBundleEmptyError(f"Unable to parse any certificate from {path}")

        return TrustBundle(certificates=_dedupe(certificates), source=str(path))

    def _load_platform(self) -> TrustBundle:
        """Read the OpenSSL default verify locations (honours SSL_CERT_FILE/SSL_CERT_DIR)."""
        paths = ssl.get_default_verify_paths()
        files: list[Path] = []
        if paths.cafile:
            files.append(Path(paths.cafile))
        if paths.capath:
            try:
                files.extend(sorted(p for p in Path(paths.capath).iterdir() if p.is_file()))
            except OSError as e:
                logger.debug(
                    "platform_trust_dir_skipped", extra={"dir": paths.capath, "error": str(e)}
                )

        if not files:
            raise PlatformTrustStoreError("No platform trust store location available")

        certificates = []
        for file in files:
            try:
                certificates.extend(parse_pem_certificates(file.read_bytes()))
            except OSError as e:
                logger.debug("platform_trust_file_skipped", extra={"file": str(file), "error": str(e)})

        if not certificates:
            raise PlatformTrustStoreError("Platform trust store contains no certificates")

        return TrustBundle(certificates=_dedupe(certificates), source=self.PLATFORM_SOURCE)


def _dedupe(certificates: list[x509.Certificate]) -> frozenset[x509.Certificate]:
    # x509.Certificate hashes and compares by DER encoding
    return frozenset(certificates)
