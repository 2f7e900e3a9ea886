import time

from flask import Response, request
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

# Registry totals, mirrored from the cached counts
accounts_total = Gauge("twtxt_registry_accounts_total", "Number of registered accounts")
entries_total = Gauge("twtxt_registry_entries_total", "Number of stored entries")

# Sync Metrics
sync_runs_total = Counter("twtxt_registry_sync_runs_total", "Feed sync runs", ["status"])
sync_duration_seconds = Histogram("twtxt_registry_sync_duration_seconds", "Time spent syncing all feeds")
feeds_fetched_total = Counter("twtxt_registry_feeds_fetched_total", "Feed fetches", ["result"])
entries_inserted_total = Counter("twtxt_registry_entries_inserted_total", "New entries stored")
feed_lines_skipped_total = Counter("twtxt_registry_feed_lines_skipped_total", "Feed lines skipped as malformed")

# API Metrics
api_request_duration_seconds = Histogram(
    "twtxt_registry_api_request_duration_seconds", "API request duration", ["endpoint", "method"]
)

api_requests_total = Counter(
    "twtxt_registry_api_requests_total", "Total API requests", ["endpoint", "method", "status_code"]
)


def update_count_metrics(account_count, entry_count):
    accounts_total.set(account_count)
    entries_total.set(entry_count)


def init_metrics(app):
    @app.route("/metrics")
    def metrics():
        return Response(generate_latest(), mimetype=CONTENT_TYPE_LATEST)

    @app.before_request
    def before_request():
        request.start_time = time.time()

    @app.after_request
    def after_request(response):
        duration = time.time() - getattr(request, "start_time", time.time())
        api_request_duration_seconds.labels(endpoint=request.endpoint or "unknown", method=request.method).observe(
            duration
        )
        api_requests_total.labels(
            endpoint=request.endpoint or "unknown", method=request.method, status_code=response.status_code
        ).inc()
        return response

    app.logger.info("Prometheus metrics initialized at /metrics")
