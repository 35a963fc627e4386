"""Tracing, Prometheus series and structlog setup for the darshan API."""

import logging

import structlog
from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest

from .config import settings

SERVICE_NAME = "smart-darshan-api"
SERVICE_VERSION = "1.0.0"

# Prometheus metrics
REGISTRY = CollectorRegistry()

# Request metrics
REQUEST_COUNT = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status_code'],
    registry=REGISTRY
)

REQUEST_DURATION = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint'],
    registry=REGISTRY
)

# Realtime metrics
QUEUE_MERGES = Counter(
    'queue_merges_total',
    'Queue patches offered to a tracker, by outcome',
    ['outcome'],
    registry=REGISTRY
)

ACTIVE_SUBSCRIPTIONS = Gauge(
    'realtime_subscriptions_active',
    'Realtime subscriptions that are not closed',
    ['table'],
    registry=REGISTRY
)

FEED_EVENTS = Counter(
    'change_feed_events_total',
    'Change events published on the feed',
    ['table', 'event_type'],
    registry=REGISTRY
)

FEED_DROPPED_SUBSCRIBERS = Counter(
    'change_feed_dropped_subscribers_total',
    'Subscribers dropped because their buffer was full',
    ['table'],
    registry=REGISTRY
)

# Business metrics
CROWD_READINGS = Counter(
    'crowd_readings_recorded_total',
    'Crowd readings ingested',
    ['crowd_level'],
    registry=REGISTRY
)

QUEUE_LENGTH = Gauge(
    'temple_queue_length',
    'Active queue entries per temple',
    ['temple_id'],
    registry=REGISTRY
)

WEATHER_LOOKUPS = Counter(
    'weather_lookups_total',
    'Weather provider lookups, by outcome',
    ['outcome'],
    registry=REGISTRY
)

NOTIFICATIONS = Counter(
    'notifications_total',
    'Notifications handed to the dispatcher, by outcome',
    ['type', 'outcome'],
    registry=REGISTRY
)

PAYMENTS = Counter(
    'upi_payments_total',
    'UPI payment transitions, by resulting status',
    ['status'],
    registry=REGISTRY
)


def setup_structured_logging():
    """JSON log lines in production, console rendering in debug; request ids come from contextvars."""

    def add_trace_context(logger, method_name, event_dict):
        # Correlate log lines with the active OTel span
        span = trace.get_current_span()
        if span and span.is_recording():
            ctx = span.get_span_context()
            event_dict['trace_id'] = format(ctx.trace_id, '032x')
            event_dict['span_id'] = format(ctx.span_id, '016x')
        return event_dict

    structlog.configure(
        processors=[
            # request_id is bound here by the request middleware
            structlog.contextvars.merge_contextvars,
            add_trace_context,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.ConsoleRenderer() if settings.debug else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level)
        ),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def _resource() -> Resource:
    return Resource.create({
        "service.name": SERVICE_NAME,
        "service.version": SERVICE_VERSION,
        "environment": settings.environment,
    })


def setup_tracing():
    """Export spans to the OTLP collector; no-op without an endpoint."""
    provider = TracerProvider(resource=_resource())

    if settings.otlp_endpoint:
        otlp_exporter = OTLPSpanExporter(endpoint=settings.otlp_endpoint)
        provider.add_span_processor(BatchSpanProcessor(otlp_exporter))

    trace.set_tracer_provider(provider)
    return trace.get_tracer(__name__)


def setup_metrics():
    """Export OTel metrics when an OTLP endpoint is configured."""
    if settings.otlp_endpoint:
        otlp_exporter = OTLPMetricExporter(endpoint=settings.otlp_endpoint)
        reader = PeriodicExportingMetricReader(exporter=otlp_exporter, export_interval_millis=60000)
        metrics.set_meter_provider(MeterProvider(resource=_resource(), metric_readers=[reader]))

    return metrics.get_meter(__name__)


def instrument_fastapi(app):
    """Trace every HTTP request; websocket scopes are traced too."""
    FastAPIInstrumentor.instrument_app(app)


def instrument_sqlalchemy():
    SQLAlchemyInstrumentor().instrument()


class MetricsCollector:
    """Queue, feed, crowd, weather, notification and payment counters behind one facade."""

    @staticmethod
    def record_request(method: str, endpoint: str, status_code: int, duration: float):
        REQUEST_COUNT.labels(method=method, endpoint=endpoint, status_code=str(status_code)).inc()
        REQUEST_DURATION.labels(method=method, endpoint=endpoint).observe(duration)

    @staticmethod
    def record_queue_merge(outcome: str):
        """Record the outcome of one tracker merge."""
        QUEUE_MERGES.labels(outcome=outcome).inc()

    @staticmethod
    def subscription_opened(table: str):
        ACTIVE_SUBSCRIPTIONS.labels(table=table).inc()

    @staticmethod
    def subscription_closed(table: str):
        ACTIVE_SUBSCRIPTIONS.labels(table=table).dec()

    @staticmethod
    def record_feed_event(table: str, event_type: str):
        FEED_EVENTS.labels(table=table, event_type=event_type).inc()

    @staticmethod
    def record_dropped_subscriber(table: str):
        FEED_DROPPED_SUBSCRIBERS.labels(table=table).inc()

    @staticmethod
    def record_crowd_reading(crowd_level: str):
        CROWD_READINGS.labels(crowd_level=crowd_level).inc()

    @staticmethod
    def set_queue_length(temple_id: str, length: int):
        """Set the number of active queue entries for a temple."""
        QUEUE_LENGTH.labels(temple_id=temple_id).set(length)

    @staticmethod
    def record_weather_lookup(outcome: str):
        WEATHER_LOOKUPS.labels(outcome=outcome).inc()

    @staticmethod
    def record_notification(notification_type: str, outcome: str):
        NOTIFICATIONS.labels(type=notification_type, outcome=outcome).inc()

    @staticmethod
    def record_payment(status: str):
        PAYMENTS.labels(status=status).inc()


def get_prometheus_metrics():
    """Text exposition of the darshan registry."""
    return generate_latest(REGISTRY)


metrics_collector = MetricsCollector()


class StructuredLogger:
    """structlog wrapper used by the trackers, feed and realtime router."""

    def __init__(self, logger):
        self.logger = logger

    def info(self, message: str, **kwargs):
        self.logger.info(message, **kwargs)

    def warning(self, message: str, **kwargs):
        self.logger.warning(message, **kwargs)

    def error(self, message: str, **kwargs):
        self.logger.error(message, **kwargs)

    def debug(self, message: str, **kwargs):
        self.logger.debug(message, **kwargs)

    def with_context(self, **kwargs) -> "StructuredLogger":
        return StructuredLogger(self.logger.bind(**kwargs))


def get_logger(name: str) -> StructuredLogger:
    return StructuredLogger(structlog.get_logger(name))
