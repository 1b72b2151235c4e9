"""Fixed mTLS server policy and the ssl contexts built from it.

Policy (not configurable):
- Client certificates are required and verified against the trust bundle
- TLS 1.2 minimum
- TLS 1.2 cipher suites limited to ECDHE with RSA/ECDSA and AES-GCM 128/256
- Server cipher order takes precedence
"""

import logging
import secrets
import ssl
import tempfile
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from opentelemetry import trace

from tlsidentity.errors import NotLoadedError
from tlsidentity.keystore.bundle import CertificateBundle
from tlsidentity.keystore.trust import TrustBundle, TrustBundleLoader
from tlsidentity.services.certificate_store import HandshakeContext, ReloadableCertificateStore

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

MINIMUM_VERSION = ssl.TLSVersion.TLSv1_2

# OpenSSL names; TLS 1.3 suites are governed by OpenSSL defaults
CIPHER_SUITES = (
    "ECDHE-RSA-AES128-GCM-SHA256",
    "ECDHE-ECDSA-AES128-GCM-SHA256",
    "ECDHE-RSA-AES256-GCM-SHA384",
    "ECDHE-ECDSA-AES256-GCM-SHA384",
)

CertificateCallback = Callable[[HandshakeContext | None], CertificateBundle]


class ClientAuth(str, Enum):
    REQUIRE_AND_VERIFY = "require_and_verify"


@dataclass(frozen=True)
class ServerTLSPolicy:
    """Immutable TLS settings shared by every accepted connection."""

    trust_bundle: TrustBundle
    get_certificate: CertificateCallback
    minimum_version: ssl.TLSVersion = MINIMUM_VERSION
    cipher_suites: tuple[str, ...] = CIPHER_SUITES
    client_auth: ClientAuth = ClientAuth.REQUIRE_AND_VERIFY
    prefer_server_ciphers: bool = True

    @property
    def client_cas(self) -> TrustBundle:
        """Roots used to verify client certificates (same set as the trusted roots)."""
        return self.trust_bundle

    def server_context(self) -> ssl.SSLContext:
        """Build a server SSLContext that follows certificate reloads."""
        return ServerContextFactory(self).context()

    def client_context(self) -> ssl.SSLContext:
        """Build a client SSLContext presenting the current certificate.

        Peers are verified against the same trust bundle.
        """
        ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        self.apply(ctx)
        load_bundle(ctx, self.get_certificate(None))
        return ctx

    def apply(self, ctx: ssl.SSLContext) -> None:
        """Apply the fixed policy to an SSLContext."""
        ctx.minimum_version = self.minimum_version
        ctx.set_ciphers(":".join(self.cipher_suites))
        if self.prefer_server_ciphers:
            ctx.options |= ssl.OP_CIPHER_SERVER_PREFERENCE
        ctx.verify_mode = ssl.CERT_REQUIRED
        ctx.load_verify_locations(cadata=self.trust_bundle.pem())


def load_bundle(ctx: ssl.SSLContext, bundle: CertificateBundle) -> None:
    """Load a certificate bundle into an SSLContext.

    OpenSSL only loads keys from files, so the key is written encrypted under a
    one-time random password into a private temporary directory that is removed
    before returning.
    """
    password = secrets.token_urlsafe(32).encode("ascii")
    with tempfile.TemporaryDirectory(prefix="tlsidentity-") as tmp:
        chain_path = Path(tmp) / "chain.pem"
        key_path = Path(tmp) / "key.pem"
        chain_path.write_bytes(bundle.chain_pem())
        key_path.write_bytes(bundle.encrypted_private_key_pem(password))
        ctx.load_cert_chain(str(chain_path), str(key_path), password=password)


class ServerContextFactory:
    """Builds server SSLContexts that pick up the published certificate per handshake.

    Every context carries an SNI callback. On each handshake it fetches the
    published bundle and, when that is not the bundle the connection started
    with, switches the connection to a context holding the new bundle.
    """

    def __init__(self, policy: ServerTLSPolicy):
        self._policy = policy
        self._cached: tuple[CertificateBundle, ssl.SSLContext] | None = None

    def context(self) -> ssl.SSLContext:
        return self.context_for(self._policy.get_certificate(None))

    def context_for(self, bundle: CertificateBundle) -> ssl.SSLContext:
        cached = self._cached
        if cached is not None and cached[0] is bundle:
            return cached[1]

        ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        self._policy.apply(ctx)
        load_bundle(ctx, bundle)
        ctx.sni_callback = self._select_certificate

        # Racing handshakes may both build a context; either result is valid
        self._cached = (bundle, ctx)
        logger.debug("server_context_built", extra={"subject": bundle.subject})
        return ctx

    def _select_certificate(
        self,
        ssl_object: ssl.SSLObject | ssl.SSLSocket,
        server_name: str | None,
        current: ssl.SSLContext,
    ) -> int | None:
        try:
            bundle = self._policy.get_certificate(HandshakeContext(server_name=server_name))
        except NotLoadedError:
            logger.error("certificate_not_loaded", extra={"server_name": server_name})
            return ssl.ALERT_DESCRIPTION_INTERNAL_ERROR

        ctx = self.context_for(bundle)
        if ctx is not current:
            ssl_object.context = ctx
        return None


class ServerTLSPolicyBuilder:
    """Assembles the fixed server policy around a certificate store."""

    def __init__(
        self,
        store: ReloadableCertificateStore,
        trust_loader: TrustBundleLoader | None = None,
    ):
        self._store = store
        self._trust_loader = trust_loader or TrustBundleLoader()

    def build(self, ca_bundle_path: str | Path | None) -> ServerTLSPolicy:
        """Build the policy.

        Args:
            ca_bundle_path: PEM trust bundle; empty selects the platform trust store.

        Raises:
            FileReadError, TrustBundleParseError, PlatformTrustStoreError: From trust loading.
        """
        with tracer.start_as_current_span("ServerTLSPolicyBuilder.build"):
            trust_bundle = self._trust_loader.load(ca_bundle_path)
            policy = ServerTLSPolicy(
                trust_bundle=trust_bundle,
                get_certificate=self._store.get_current,
            )

            logger.info(
                "tls_policy_built",
                extra={
                    "trust_source": trust_bundle.source,
                    "minimum_version": policy.minimum_version.name,
                    "client_auth": policy.client_auth.value,
                },
            )
            return policy
