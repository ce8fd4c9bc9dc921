"""
Prometheus metrics for mfa_service.

Provides observability metrics for monitoring:
- HTTP requests and performance
- MFA operations by outcome
- Rate limiting and challenge hygiene
"""

from prometheus_client import Counter, Gauge, Histogram, Info

# ============================================================================
# Application Info
# ============================================================================

app_info = Info('mfa_service', 'MFA service application info')

# ============================================================================
# HTTP Metrics
# ============================================================================

http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status']
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint'],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.075, 0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0, 7.5, 10.0)
)

http_requests_in_progress = Gauge(
    'http_requests_in_progress',
    'Number of HTTP requests currently being processed',
    ['method', 'endpoint']
)

# ============================================================================
# MFA Metrics
# ============================================================================

mfa_operations_total = Counter(
    'mfa_operations_total',
    'Total MFA operations',
    ['operation', 'status']  # operation: enroll, verify_setup, authenticate, ...; status: success or error kind
)

mfa_rate_limited_total = Counter(
    'mfa_rate_limited_total',
    'Total MFA requests rejected by the attempt rate limiter'
)

mfa_challenges_swept_total = Counter(
    'mfa_challenges_swept_total',
    'Total expired MFA challenges removed by the sweeper'
)

# ============================================================================
# Redis/Event Metrics
# ============================================================================

events_published_total = Counter(
    'events_published_total',
    'Total events published to Redis',
    ['event_type', 'status']  # status: success, error
)
