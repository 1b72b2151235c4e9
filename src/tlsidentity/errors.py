"""Error taxonomy for the TLS identity module.

Every error raised by this package derives from TLSIdentityError so callers
(for example a reload trigger) can log and continue with a single except.
"""


class TLSIdentityError(Exception):
    """Base class for TLS identity errors."""

    pass


class FileReadError(TLSIdentityError):
    """Raised when a keystore or trust bundle file cannot be read."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Failed to read {path}: {reason}")
        self.path = path


class ContainerDecodeError(TLSIdentityError):
    """Raised when a keystore cannot be decrypted or is malformed."""

    pass


class KeyPairMismatchError(TLSIdentityError):
    """Raised when the private key does not belong to the leaf certificate."""

    pass


class LeafParseError(TLSIdentityError):
    """Raised when the leaf certificate cannot be parsed."""

    pass


class TrustBundleParseError(TLSIdentityError):
    """Raised when a trust bundle cannot be parsed."""

    pass


class TrustBundleEmptyError(TrustBundleParseError):
    """Raised when a trust bundle yields no certificates."""

    pass


class PlatformTrustStoreError(TLSIdentityError):
    """Raised when the platform exposes no default trust store."""

    pass


class NotLoadedError(TLSIdentityError):
    """Raised when a certificate is requested before any successful load."""

    pass
