"""OpenTelemetry metrics for the TLS identity module."""

from collections.abc import Iterator
from datetime import datetime

from opentelemetry import metrics

meter = metrics.get_meter("tlsidentity")

# Keystore lifecycle counters
certificate_loads_total = meter.create_counter(
    name="tlsidentity_certificate_loads_total",
    description="Total initial keystore loads",
    unit="1",
)

certificate_reloads_total = meter.create_counter(
    name="tlsidentity_certificate_reloads_total",
    description="Total keystore reload attempts",
    unit="1",
)

certificate_reload_duration = meter.create_histogram(
    name="tlsidentity_certificate_reload_duration_seconds",
    description="Keystore read and decode duration in seconds",
    unit="s",
)

# Handshake-time certificate selection
certificate_selections_total = meter.create_counter(
    name="tlsidentity_certificate_selections_total",
    description="Total certificate selections during TLS handshakes",
    unit="1",
)

trust_bundle_loads_total = meter.create_counter(
    name="tlsidentity_trust_bundle_loads_total",
    description="Total trust bundle loads",
    unit="1",
)

# Expiry of the certificate currently served
_served_not_after: float | None = None


def _get_served_not_after(
    options: metrics.CallbackOptions,
) -> Iterator[metrics.Observation]:
    """Callback to report the served certificate's expiry as a unix timestamp."""
    if _served_not_after is not None:
        yield metrics.Observation(_served_not_after, {})


served_certificate_expiry_gauge = meter.create_observable_gauge(
    name="tlsidentity_served_certificate_not_after_seconds",
    description="Expiry of the served certificate (unix timestamp)",
    unit="s",
    callbacks=[_get_served_not_after],
)


class TLSIdentityMetrics:
    """Facade for TLS identity metrics with proper labels."""

    def record_certificate_loaded(self, result: str) -> None:
        """Record an initial load. Labels: result=success|failure"""
        certificate_loads_total.add(1, {"result": result})

    def record_certificate_reload(self, result: str, duration_seconds: float) -> None:
        """Record a reload attempt. Labels: result=success|failure"""
        certificate_reloads_total.add(1, {"result": result})
        certificate_reload_duration.record(duration_seconds)

    def record_certificate_selected(self, result: str) -> None:
        """Record a handshake selection. Labels: result=served|not_loaded"""
        certificate_selections_total.add(1, {"result": result})

    def record_trust_bundle_loaded(self, source: str) -> None:
        """Record a trust bundle load. Labels: source=file|platform"""
        trust_bundle_loads_total.add(1, {"source": source})

    def record_certificate_published(self, not_after: datetime) -> None:
        """Track the expiry of the newly published certificate."""
        global _served_not_after
        _served_not_after = not_after.timestamp()


# Singleton instance
tls_metrics = TLSIdentityMetrics()
