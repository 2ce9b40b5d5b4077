"""Prometheus monitoring configuration with duplicate-registration guard.

HTTP instrumentation comes from prometheus-fastapi-instrumentator; delivery counters track the
per-token results and prunes so a rise in dead tokens or transient failures is visible without
reading logs. Instrumentation is guarded to avoid duplicate registry errors when multiple app
instances are created in tests.
"""

from fastapi import FastAPI
from prometheus_client import Counter
from prometheus_fastapi_instrumentator import Instrumentator

# Global guard to avoid double-registration when multiple app instances are created in tests.
_metrics_configured = False

PUSH_SENDS = Counter(
    "push_delivery_sends_total",
    "Send calls by terminal state",
    ["state"],
)
PUSH_TOKEN_RESULTS = Counter(
    "push_delivery_token_results_total",
    "Per-token dispatch results",
    ["result"],
)
PUSH_PRUNED_TOKENS = Counter(
    "push_delivery_pruned_tokens_total",
    "Dead tokens removed from the store",
)


def record_outcome(outcome) -> None:
    """Fold one DeliveryOutcome into the delivery counters."""
    PUSH_SENDS.labels(state=outcome.state.value).inc()
    if outcome.success_count:
        PUSH_TOKEN_RESULTS.labels(result="success").inc(outcome.success_count)
    if outcome.transient_tokens:
        PUSH_TOKEN_RESULTS.labels(result="transient").inc(len(outcome.transient_tokens))
    permanent = outcome.failure_count - len(outcome.transient_tokens)
    if permanent > 0:
        PUSH_TOKEN_RESULTS.labels(result="permanent").inc(permanent)
    if outcome.pruned_tokens:
        PUSH_PRUNED_TOKENS.inc(len(outcome.pruned_tokens))


def setup_monitoring(app: FastAPI) -> None:
    """Attach Prometheus instrumentation once per process/test run.

    Exposes `/metrics` for scraping and collects request totals, duration, and in-flight gauges.
    """
    global _metrics_configured
    if _metrics_configured or getattr(app.state, "metrics_enabled", False):
        return

    instrumentator = Instrumentator(
        should_group_status_codes=False,
        should_ignore_untemplated=True,
        should_instrument_requests_inprogress=True,
        excluded_handlers=[
            "/metrics",
            "/livez",
            "/readyz",
            "/docs",
            "/openapi.json",
        ],
        inprogress_name="push_delivery_inprogress",
        inprogress_labels=True,
    )

    instrumentator.instrument(app)
    instrumentator.expose(app, include_in_schema=False)

    app.state.metrics_enabled = True
    _metrics_configured = True
