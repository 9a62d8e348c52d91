"""
Prometheus metrics for the aggregation and settlement service.

Metrics exposed:
- Provider request outcome counters (ESPN, The Odds API, BallDontLie)
- Cache lookup counters (hit, miss, stale fallback)
- Odds API quota gauges
- Settlement counters from the resolver sweep
- Scheduler status gauges
"""
import logging

from prometheus_client import Counter, Gauge, start_http_server

logger = logging.getLogger(__name__)

# Provider Metrics
provider_requests_success_total = Counter(
    "provider_requests_success_total",
    "Total successful provider requests",
    ["provider"]
)

provider_requests_failure_total = Counter(
    "provider_requests_failure_total",
    "Total failed provider requests",
    ["provider", "error_type"]
)

# Cache Metrics
cache_lookups_total = Counter(
    "cache_lookups_total",
    "Total cache lookups by outcome",
    ["outcome"]  # hit, miss, stale
)

# API Quota Metrics
odds_api_quota_remaining = Gauge(
    "odds_api_quota_remaining",
    "Remaining Odds API requests for current billing period"
)

odds_api_quota_used = Gauge(
    "odds_api_quota_used",
    "Used Odds API requests in current billing period"
)

# Settlement Metrics
picks_settled_total = Counter(
    "picks_settled_total",
    "Total picks settled automatically",
    ["sport", "result"]
)

resolver_group_errors_total = Counter(
    "resolver_group_errors_total",
    "Total (sport, date) groups that failed during a resolver sweep",
    ["sport"]
)

# Scheduler Metrics
scheduler_running = Gauge(
    "scheduler_running",
    "Whether the automation scheduler is running (1=running, 0=stopped)"
)

scheduler_jobs_total = Gauge(
    "scheduler_jobs_total",
    "Total number of scheduled jobs"
)


def update_odds_api_quota(remaining: int | None, used: int | None):
    """
    Update Odds API quota metrics.

    Args:
        remaining: Remaining requests (None leaves the gauge unchanged)
        used: Used requests (None leaves the gauge unchanged)
    """
    if remaining is not None:
        odds_api_quota_remaining.set(remaining)
    if used is not None:
        odds_api_quota_used.set(used)


def update_scheduler_metrics(running: bool, jobs: int = 0):
    """Update scheduler status gauges."""
    scheduler_running.set(1 if running else 0)
    scheduler_jobs_total.set(jobs if running else 0)


def record_provider_success(provider: str):
    """Record a successful provider request."""
    provider_requests_success_total.labels(provider=provider).inc()


def record_provider_failure(provider: str, error_type: str = "unknown"):
    """Record a failed provider request."""
    provider_requests_failure_total.labels(provider=provider, error_type=error_type).inc()


def record_cache_lookup(outcome: str):
    """Record a cache lookup outcome ('hit', 'miss' or 'stale')."""
    cache_lookups_total.labels(outcome=outcome).inc()


def record_pick_settled(sport: str, result: str):
    """Record an automatically settled pick."""
    picks_settled_total.labels(sport=sport or "unknown", result=result).inc()


def record_resolver_group_error(sport: str):
    """Record a resolver group that raised during a sweep."""
    resolver_group_errors_total.labels(sport=sport or "unknown").inc()


def start_metrics_server(port: int) -> bool:
    """
    Expose the default registry over HTTP for Prometheus scraping.

    Returns:
        True if the server was started, False when port is 0
    """
    if not port:
        return False
    start_http_server(port)
    logger.info(f"Prometheus metrics available on :{port}/metrics")
    return True
