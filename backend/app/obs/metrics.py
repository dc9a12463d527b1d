"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

REQUEST_COUNTER = Counter(
	"fellowship_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"fellowship_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

SOCKET_CLIENTS = Gauge(
	"fellowship_socketio_clients",
	"Active Socket.IO clients per namespace",
	["namespace"],
)

SOCKET_EVENTS = Counter(
	"fellowship_socketio_events_total",
	"Socket.IO frames handled per namespace",
	["namespace", "event"],
)

REGISTRY_CONNECTIONS = Gauge(
	"fellowship_registry_connections",
	"Connections currently held by the connection registry",
)

HEARTBEAT_EVICTIONS = Counter(
	"fellowship_heartbeat_evictions_total",
	"Connections evicted by the liveness monitor",
)

HEARTBEAT_SWEEPS = Counter(
	"fellowship_heartbeat_sweeps_total",
	"Liveness sweeps completed",
)

MATCH_REQUESTS = Counter(
	"fellowship_match_requests_total",
	"Matching request lifecycle operations",
	["action", "result"],
)

MATCH_SCORE = Histogram(
	"fellowship_match_score",
	"Match scores frozen on new matching requests",
	buckets=(10, 20, 30, 40, 50, 60, 70, 80, 90, 100),
)

ANNOUNCEMENTS_PUBLISHED = Counter(
	"fellowship_announcements_published_total",
	"Announcements persisted by the dispatcher",
	["kind", "audience"],
)

ANNOUNCEMENT_DELIVERIES = Counter(
	"fellowship_announcement_deliveries_total",
	"Per-connection push attempts",
	["result"],
)

ANNOUNCEMENT_FANOUT = Histogram(
	"fellowship_announcement_fanout_connections",
	"Number of connections resolved per published announcement",
	buckets=(0, 1, 2, 5, 10, 25, 50, 100, 250, 1000),
)


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def socket_connected(namespace: str) -> None:
	SOCKET_CLIENTS.labels(namespace=namespace).inc()


def socket_disconnected(namespace: str) -> None:
	SOCKET_CLIENTS.labels(namespace=namespace).dec()


def socket_event(namespace: str, event: str) -> None:
	SOCKET_EVENTS.labels(namespace=namespace, event=event).inc()


def registry_size(count: int) -> None:
	REGISTRY_CONNECTIONS.set(count)


def heartbeat_sweep(evicted: int) -> None:
	HEARTBEAT_SWEEPS.inc()
	if evicted:
		HEARTBEAT_EVICTIONS.inc(evicted)


def match_request(action: str, result: str) -> None:
	MATCH_REQUESTS.labels(action=action, result=result).inc()


def match_score(score: float) -> None:
	MATCH_SCORE.observe(score)


def announcement_published(kind: str, audience: str, fanout: int) -> None:
	ANNOUNCEMENTS_PUBLISHED.labels(kind=kind, audience=audience).inc()
	ANNOUNCEMENT_FANOUT.observe(fanout)


def announcement_delivery(result: str) -> None:
	ANNOUNCEMENT_DELIVERIES.labels(result=result).inc()
