"""Reloadable server certificate store.

Holds the service's TLS identity as a single published reference to an
immutable CertificateBundle. Handshakes read the reference without locking;
reload() builds a complete replacement bundle first and publishes it with a
single attribute assignment, so a reader sees either the old bundle or the
new one and never a mixture of the two.
"""

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path

from opentelemetry import trace

from tlsidentity.errors import FileReadError, NotLoadedError
from tlsidentity.keystore.bundle import CertificateBundle
from tlsidentity.keystore.decoder import ContainerDecoder
from tlsidentity.metrics import tls_metrics

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass(frozen=True)
class CertificateStoreConfig:
    """Location and passphrase of the PKCS#12 keystore."""

    keystore_path: Path
    passphrase: str = field(repr=False)


@dataclass(frozen=True)
class HandshakeContext:
    """What is known about a handshake when its certificate is selected."""

    server_name: str | None = None


class ReloadableCertificateStore:
    """Owns the server certificate and lets it be replaced at runtime.

    Use build() to obtain a store; it fails unless the initial load succeeds.
    """

    def __init__(self, config: CertificateStoreConfig, decoder: ContainerDecoder | None = None):
        self.config = config
        self._decoder = decoder or ContainerDecoder()
        self._current: CertificateBundle | None = None

    @classmethod
    def build(
        cls, config: CertificateStoreConfig, decoder: ContainerDecoder | None = None
    ) -> "ReloadableCertificateStore":
        """Create a store and perform its initial load.

        Raises:
            TLSIdentityError: If the initial load fails.
        """
        store = cls(config, decoder)
        store.load()
        return store

    @property
    def loaded(self) -> bool:
        return self._current is not None

    def load(self) -> None:
        """Read, decode and publish the keystore for the first time.

        On failure nothing is published and the error propagates.
        """
        with tracer.start_as_current_span("ReloadableCertificateStore.load") as span:
            span.set_attribute("keystore_path", str(self.config.keystore_path))
            try:
                bundle = self._read_bundle()
            except Exception as e:
                tls_metrics.record_certificate_loaded("failure")
                logger.error(
                    "certificate_load_failed",
                    extra={
                        "keystore_path": str(self.config.keystore_path),
                        "error_type": type(e).__name__,
                        "error": str(e),
                    },
                )
                raise

            self._publish(bundle)
            tls_metrics.record_certificate_loaded("success")
            self._log_published("certificate_loaded", bundle)

    def reload(self) -> None:
        """Replace the published certificate with the keystore's current contents.

        The replacement is all-or-nothing: if reading or decoding fails the
        previously published bundle stays in place and the error propagates.
        """
        with tracer.start_as_current_span("ReloadableCertificateStore.reload") as span:
            span.set_attribute("keystore_path", str(self.config.keystore_path))
            start_time = time.time()

            try:
                bundle = self._read_bundle()
            except Exception as e:
                tls_metrics.record_certificate_reload("failure", time.time() - start_time)
                logger.warning(
                    "certificate_reload_failed",
                    extra={
                        "keystore_path": str(self.config.keystore_path),
                        "error_type": type(e).__name__,
                        "error": str(e),
                    },
                )
                raise

            self._publish(bundle)
            tls_metrics.record_certificate_reload("success", time.time() - start_time)
            span.set_attribute("serial", format(bundle.serial_number, "x"))
            self._log_published("certificate_reloaded", bundle)

    def get_current(self, handshake: HandshakeContext | None = None) -> CertificateBundle:
        """Return the published bundle for a handshake.

        Raises:
            NotLoadedError: If no bundle has ever been published.
        """
        bundle = self._current
        if bundle is None:
            tls_metrics.record_certificate_selected("not_loaded")
            raise NotLoadedError("No certificate has been loaded")
        tls_metrics.record_certificate_selected("served")
        return bundle

    def _read_bundle(self) -> CertificateBundle:
        path = self.config.keystore_path
        try:
            container = Path(path).read_bytes()
        except OSError as e:
            raise FileReadError(str(path), e.strerror or str(e)) from e
        return self._decoder.decode(container, self.config.passphrase)

    def _publish(self, bundle: CertificateBundle) -> None:
        # Single reference store; the bundle is fully built and immutable
        self._current = bundle
        tls_metrics.record_certificate_published(bundle.not_after)

    def _log_published(self, event: str, bundle: CertificateBundle) -> None:
        logger.info(
            event,
            extra={
                "keystore_path": str(self.config.keystore_path),
                "subject": bundle.subject,
                "issuer": bundle.issuer,
                "serial": format(bundle.serial_number, "x"),
                "not_after": bundle.not_after.isoformat(),
                "thumbprint": bundle.thumbprint,
            },
        )
