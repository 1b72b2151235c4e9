from shared.config import Settings
from tlsidentity.keystore.bundle import CertificateBundle
from tlsidentity.main import ServerIdentity, startup
from tlsidentity.metrics import served_certificate_expiry_gauge
from tlsidentity.policy import ServerTLSPolicy
from tlsidentity.services.certificate_store import HandshakeContext

# Pydantic Settings
Settings.model_config
Settings.APP_ENV

# Leaf metadata exposed to hosting servers
CertificateBundle.issuer
CertificateBundle.not_before

# Consumed by the hosting TLS listener
ServerTLSPolicy.client_cas
ServerTLSPolicy.client_context
ServerIdentity.reload
HandshakeContext.server_name
startup

# Registered with the meter; read through its callback
served_certificate_expiry_gauge
