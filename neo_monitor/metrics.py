from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "http_status"],
)
REQUEST_LATENCY = Histogram(
    "http_request_latency_seconds",
    "HTTP request latency",
    ["method", "endpoint"],
)
CACHE_EVENTS = Counter(
    "neo_cache_events_total",
    "Cache lookups and stores by outcome",
    ["event"],
)
UPSTREAM_REQUESTS = Counter(
    "neo_upstream_requests_total",
    "Requests sent to the NASA NeoWs API",
    ["endpoint", "outcome"],
)
