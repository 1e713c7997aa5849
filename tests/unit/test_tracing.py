"""Tests for tracing: engine mutation spans and telemetry setup."""

import pytest
from fastapi import FastAPI
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import StatusCode

from porter.core.config import Settings
from porter.domain.entities.entity_ref import EntityRef
from porter.domain.exceptions import RoleNotFoundException
from porter.shared.telemetry import tracing
from porter.shared.telemetry.telemetry import Telemetry

ALICE = EntityRef("user", 1)
PROJECT = EntityRef("project", 7)


@pytest.fixture
def spans(monkeypatch) -> InMemorySpanExporter:
    """Route porter spans to an in-memory exporter without touching the global provider."""
    exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    monkeypatch.setattr(tracing.trace, "get_tracer", provider.get_tracer)
    return exporter


class TestMutationSpans:
    async def test_assign_records_pair_and_role(self, engine, spans) -> None:
        await engine.assign(ALICE, PROJECT, "editor")

        (span,) = spans.get_finished_spans()
        assert span.name == "porter.assign"
        assert span.status.status_code == StatusCode.OK
        assert span.attributes["porter.assignable.type"] == "user"
        assert span.attributes["porter.roleable.id"] == "7"
        assert span.attributes["porter.role"] == "editor"
        assert span.attributes["porter.created"] is True

    async def test_remove_and_change_are_traced(self, engine, spans) -> None:
        await engine.assign(ALICE, PROJECT, "editor")
        await engine.change_role_on(ALICE, PROJECT, "viewer")
        await engine.remove(ALICE, PROJECT)

        names = [s.name for s in spans.get_finished_spans()]
        assert names == ["porter.assign", "porter.change_role_on", "porter.remove"]
        assert spans.get_finished_spans()[-1].attributes["porter.removed_count"] == 1

    async def test_failure_marks_span_as_error(self, engine, spans) -> None:
        with pytest.raises(RoleNotFoundException):
            await engine.assign(ALICE, PROJECT, "ghost")

        (span,) = spans.get_finished_spans()
        assert span.status.status_code == StatusCode.ERROR
        assert [e.name for e in span.events] == ["exception"]


class TestTelemetry:
    def test_exporter_selection(self) -> None:
        telemetry = Telemetry("porter", "1.0.0")
        assert telemetry._exporter("none", None) is None
        assert isinstance(telemetry._exporter("console", None), ConsoleSpanExporter)
        # otlp without an endpoint falls back to the console
        assert isinstance(telemetry._exporter("otlp", None), ConsoleSpanExporter)

    def test_instrumentation_skipped_without_provider(self) -> None:
        telemetry = Telemetry("porter", "1.0.0")
        app = FastAPI()
        telemetry.instrument_app(app)
        telemetry.instrument_backends()
        telemetry.shutdown()
        assert app.user_middleware == []
        assert telemetry.tracer_provider is None

    def test_from_settings(self) -> None:
        settings = Settings(_env_file=None, app_version="2.1.0", telemetry_environment="staging")
        telemetry = Telemetry.from_settings(settings)
        assert telemetry.service_version == "2.1.0"
        assert telemetry.environment == "staging"
