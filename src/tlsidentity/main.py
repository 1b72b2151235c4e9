"""Composition root: wires the certificate store and TLS policy for a service."""

import logging
from dataclasses import dataclass
from pathlib import Path

from opentelemetry import trace
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from shared.config import Settings, settings
from shared.logging import setup_logging
from shared.metrics import setup_metrics

from tlsidentity.policy import ServerTLSPolicy, ServerTLSPolicyBuilder
from tlsidentity.services.certificate_store import (
    CertificateStoreConfig,
    ReloadableCertificateStore,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServerIdentity:
    """The store and policy a TLS listener is parameterized with."""

    store: ReloadableCertificateStore
    policy: ServerTLSPolicy

    def reload(self) -> None:
        """Entry point for external reload triggers (signals, timers, admin calls)."""
        self.store.reload()


def setup_tracing(app_name: str) -> None:
    resource = Resource.create({"service.name": app_name})
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(provider)


def build_server_identity(config: Settings = settings) -> ServerIdentity:
    """Load the keystore and assemble the TLS policy.

    A failed initial load is fatal: the error propagates and no identity is
    returned, since there would be no certificate to serve.
    """
    store_config = CertificateStoreConfig(
        keystore_path=Path(config.KEYSTORE_PATH),
        passphrase=config.KEYSTORE_PASSWORD.get_secret_value(),
    )
    store = ReloadableCertificateStore.build(store_config)
    policy = ServerTLSPolicyBuilder(store).build(config.CA_BUNDLE_PATH)
    return ServerIdentity(store=store, policy=policy)


def startup(config: Settings = settings) -> ServerIdentity:
    """Configure logging, tracing and metrics, then build the server identity."""
    setup_logging(config.LOG_LEVEL)
    setup_tracing(config.APP_NAME)
    setup_metrics(config.APP_NAME)

    LoggingInstrumentor().instrument(set_logging_format=True)

    identity = build_server_identity(config)
    logger.info(
        "server_identity_ready",
        extra={"app_env": config.APP_ENV, "subject": identity.store.get_current().subject},
    )
    return identity
