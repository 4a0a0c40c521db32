"""
OpenTelemetry tracing for history queries and aggregation runs
"""

import functools
import inspect
import os
import time
from collections.abc import Callable
from contextlib import contextmanager
from typing import Any

from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import Status, StatusCode

# Optional OTLP exporter - spans are only shipped if installed and configured
try:
    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (  # type: ignore
        OTLPSpanExporter,
    )

    OTLP_AVAILABLE = True
except ImportError:
    OTLP_AVAILABLE = False

SERVICE_NAME = "deployed-changes"
SERVICE_VERSION = "1.0.0"
MAX_ARG_ATTRIBUTE_LENGTH = 100


class TelemetryManager:
    """Creates spans for the tool's operations"""

    def __init__(self, service_name: str = SERVICE_NAME, enabled: bool = True):
        """
        Initialize telemetry manager.

        Args:
            service_name: service.name resource attribute
            enabled: Set to False to make every tracing helper a no-op
        """
        self.service_name = service_name
        self.enabled = enabled
        self.tracer = self._create_tracer() if enabled else None

    def _create_tracer(self):
        provider = TracerProvider(
            resource=Resource.create(
                {
                    "service.name": self.service_name,
                    "service.version": SERVICE_VERSION,
                }
            )
        )

        endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
        if OTLP_AVAILABLE and endpoint:
            provider.add_span_processor(
                BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint))
            )

        # Own provider instead of the global one so repeated managers don't clash
        return provider.get_tracer(__name__)

    @contextmanager
    def trace_operation(
        self, operation_name: str, attributes: dict[str, Any] | None = None
    ):
        """
        Run a block inside a span.

        Args:
            operation_name: Span name
            attributes: Attributes stamped on the span (stringified)

        Yields:
            The current span, or None when tracing is disabled
        """
        if not self.enabled or not self.tracer:
            yield None
            return

        with self.tracer.start_as_current_span(operation_name) as span:
            for key, value in (attributes or {}).items():
                span.set_attribute(key, str(value))

            try:
                yield span
            except Exception as e:
                span.set_status(Status(StatusCode.ERROR, str(e)))
                span.record_exception(e)
                raise

    def trace_function(
        self,
        operation_name: str | None = None,
        include_args: bool = False,
    ):
        """
        Decorator that wraps a function or coroutine function in a span.

        Args:
            operation_name: Span name (defaults to module.function)
            include_args: Record call arguments as span attributes
        """

        def decorator(func: Callable) -> Callable:
            if not self.enabled:
                return func

            name = operation_name or f"{func.__module__}.{func.__name__}"

            def call_attributes(args, kwargs) -> dict[str, Any]:
                if not include_args:
                    return {}
                attributes = {
                    f"arg.{i}": str(arg)[:MAX_ARG_ATTRIBUTE_LENGTH]
                    for i, arg in enumerate(args)
                }
                for key, value in kwargs.items():
                    attributes[f"kwarg.{key}"] = str(value)[:MAX_ARG_ATTRIBUTE_LENGTH]
                return attributes

            if inspect.iscoroutinefunction(func):

                @functools.wraps(func)
                async def async_wrapper(*args, **kwargs):
                    attributes = call_attributes(args, kwargs)
                    with self.trace_operation(name, attributes) as span:
                        start_time = time.monotonic()
                        result = await func(*args, **kwargs)
                        self.set_attribute(
                            span, "duration_seconds", time.monotonic() - start_time
                        )
                        return result

                return async_wrapper

            @functools.wraps(func)
            def wrapper(*args, **kwargs):
                with self.trace_operation(name, call_attributes(args, kwargs)) as span:
                    start_time = time.monotonic()
                    result = func(*args, **kwargs)
                    self.set_attribute(
                        span, "duration_seconds", time.monotonic() - start_time
                    )
                    return result

            return wrapper

        return decorator

    def set_attribute(self, span, key: str, value: Any) -> None:
        """Set an attribute on a span yielded by trace_operation (None is ignored)."""
        if span is not None and self.enabled:
            span.set_attribute(key, str(value))


_telemetry_manager: TelemetryManager | None = None


def get_telemetry_manager() -> TelemetryManager:
    """Get or create the process-wide telemetry manager.

    Tracing is on unless DEPLOYED_CHANGES_TRACING=false.
    """
    global _telemetry_manager
    if _telemetry_manager is None:
        enabled = os.getenv("DEPLOYED_CHANGES_TRACING", "true").lower() != "false"
        _telemetry_manager = TelemetryManager(enabled=enabled)
    return _telemetry_manager


def trace_operation(operation_name: str, attributes: dict[str, Any] | None = None):
    """Span context manager on the process-wide telemetry manager."""
    return get_telemetry_manager().trace_operation(operation_name, attributes)


def trace_function(operation_name: str | None = None, include_args: bool = False):
    """Tracing decorator on the process-wide telemetry manager."""
    return get_telemetry_manager().trace_function(operation_name, include_args)
