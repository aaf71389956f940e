"""Tests for the observability module."""

import pytest
import structlog
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from src.infrastructure.observability import (
    add_span_attributes,
    add_trace_context,
    get_current_trace_id,
    get_tracer,
    init_observability,
    shutdown_observability,
    traced,
)
from src.modules.handlers.invoker import build_invoker
from src.modules.handlers.registry import build_registry
from src.modules.handlers.schemas import CompiledBehavior

# Module-level setup: configure TracerProvider once before any tests run
_exporter = InMemorySpanExporter()
_provider = TracerProvider()
_provider.add_span_processor(SimpleSpanProcessor(_exporter))
trace.set_tracer_provider(_provider)


@pytest.fixture(autouse=True)
def clear_spans():
    """Clear spans before each test."""
    _exporter.clear()
    yield
    _exporter.clear()


def get_finished_spans():
    """Get finished spans from the module-level exporter."""
    return _exporter.get_finished_spans()


class TestTracedDecorator:
    """Tests for @traced decorator."""

    def test_traced_sync_function(self):
        """Sync function should run inside a span named after it."""

        @traced
        def compute():
            return "result"

        assert compute() == "result"
        spans = get_finished_spans()
        assert len(spans) == 1
        assert spans[0].name == "compute"
        assert spans[0].status.status_code == trace.StatusCode.OK

    @pytest.mark.asyncio
    async def test_traced_async_function(self):
        """Async function should run inside a span with a custom name."""

        @traced(span_name="custom.name", attributes={"key": "value"})
        async def compute():
            return "async_result"

        assert await compute() == "async_result"
        spans = get_finished_spans()
        assert len(spans) == 1
        assert spans[0].name == "custom.name"
        assert dict(spans[0].attributes or {}).get("key") == "value"

    def test_traced_records_exception(self):
        """Exceptions are recorded and the span marked as an error."""

        @traced
        def failing():
            raise ValueError("test error")

        with pytest.raises(ValueError, match="test error"):
            failing()

        spans = get_finished_spans()
        assert len(spans) == 1
        assert spans[0].status.status_code == trace.StatusCode.ERROR


class TestHandlerSpans:
    """Tests for spans emitted by the handler pipeline."""

    @pytest.mark.asyncio
    async def test_invoke_creates_span(self):
        """Each invocation runs in a handlers.invoke span tagged with the module."""
        invoker = build_invoker(
            CompiledBehavior(None, lambda ctx: "pong"), module_name="ping"
        )

        await invoker({})

        spans = get_finished_spans()
        assert [s.name for s in spans] == ["handlers.invoke"]
        assert dict(spans[0].attributes or {}).get("handler.module") == "ping"

    def test_build_registry_creates_span(self, tmp_path):
        """Building the registry records module counts on its span."""
        (tmp_path / "ping.py").write_text('handler = lambda ctx: "pong"\n')
        (tmp_path / "broken.py").write_text("handler = (\n")

        build_registry(tmp_path)

        spans = get_finished_spans()
        assert [s.name for s in spans] == ["handlers.build_registry"]
        attrs = dict(spans[0].attributes or {})
        assert attrs.get("handlers.modules") == 2
        assert attrs.get("handlers.usable") == 1


class TestSpanHelpers:
    """Tests for span helper functions."""

    def test_adds_attributes_to_current_span(self):
        """add_span_attributes should add attributes to current span."""
        with get_tracer("test").start_as_current_span("test_span"):
            add_span_attributes({"custom_key": "custom_value", "number": 100})

        attrs = dict(get_finished_spans()[0].attributes or {})
        assert attrs.get("custom_key") == "custom_value"
        assert attrs.get("number") == 100

    def test_does_nothing_without_active_span(self):
        """add_span_attributes should not fail without active span."""
        add_span_attributes({"key": "value"})

    def test_returns_trace_id_when_in_span(self):
        """get_current_trace_id should return a 32-character hex ID in a span."""
        with get_tracer("test").start_as_current_span("test_span"):
            trace_id = get_current_trace_id()

        assert trace_id is not None
        assert len(trace_id) == 32


class TestStructlogProcessor:
    """Tests for structlog trace context processor."""

    def test_adds_trace_context_when_in_span(self):
        """Processor should add trace_id and span_id to event dict."""
        with get_tracer("test").start_as_current_span("test_span"):
            result = add_trace_context(None, "info", {"event": "test_event"})

        assert len(result["trace_id"]) == 32
        assert len(result["span_id"]) == 16
        assert result["event"] == "test_event"

    def test_no_trace_context_without_span(self):
        """Processor should leave the event untouched outside a span."""
        result = add_trace_context(None, "info", {"event": "test_event"})

        assert result == {"event": "test_event"}


class TestInitObservability:
    """Tests for init_observability and shutdown_observability."""

    @pytest.fixture(autouse=True)
    def reset_structlog(self):
        """Restore default structlog configuration after each test."""
        yield
        shutdown_observability()
        structlog.reset_defaults()

    def test_configures_structlog(self):
        """Initialization switches structlog to the stdlib logger factory."""
        init_observability("test-service", "0.0.0", tracing_enabled=False)

        config = structlog.get_config()
        assert add_trace_context in config["processors"]
        assert config["wrapper_class"] is structlog.stdlib.BoundLogger

    def test_json_rendering(self):
        """log_json selects the JSON renderer."""
        init_observability(
            "test-service", "0.0.0", log_json=True, tracing_enabled=False
        )

        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)

    def test_second_call_is_ignored(self):
        """Only the first initialization takes effect until shutdown."""
        init_observability(
            "test-service", "0.0.0", log_json=True, tracing_enabled=False
        )
        init_observability(
            "test-service", "0.0.0", log_json=False, tracing_enabled=False
        )

        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)
