"""Keystore module: PKCS#12 decoding and trust bundle loading."""

from tlsidentity.keystore.bundle import CertificateBundle
from tlsidentity.keystore.decoder import ContainerDecoder
from tlsidentity.keystore.trust import TrustBundle, TrustBundleLoader

__all__ = ["CertificateBundle", "ContainerDecoder", "TrustBundle", "TrustBundleLoader"]
