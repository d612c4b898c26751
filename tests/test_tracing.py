"""Tests for Langfuse tracing setup behavior."""

from __future__ import annotations

from contextlib import contextmanager
import sys
import types

from story_weaver.config import LangfuseConfig
from story_weaver.llm import tracing


class DummySpan:
    def __init__(self):
        self.updates: list[dict] = []

    def update(self, **kwargs):
        self.updates.append(kwargs)


def install_fake_langfuse(monkeypatch) -> dict:
    captured: dict = {"spans": [], "flushed": 0}

    class DummyLangfuse:
        def __init__(self, **kwargs):
            captured["init"] = kwargs

        @contextmanager
        def start_as_current_span(self, **kwargs):
            span = DummySpan()
            captured["spans"].append((kwargs, span))
            yield span

        def flush(self):
            captured["flushed"] += 1

    monkeypatch.setitem(sys.modules, "langfuse", types.SimpleNamespace(Langfuse=DummyLangfuse))
    return captured


def test_disabled_tracing_yields_no_span():
    tracing.setup_langfuse(LangfuseConfig(enabled=False))
    with tracing.start_span("story.generate.initial", kind="llm", input_value="x") as span:
        assert span is None
    tracing.set_span_output(None, "ignored")
    tracing.flush()


def test_enabled_tracing_reads_env_and_records_spans(monkeypatch):
    captured = install_fake_langfuse(monkeypatch)
    monkeypatch.setenv("LANGFUSE_PUBLIC_KEY", "pk-test")
    monkeypatch.setenv("LANGFUSE_SECRET_KEY", "sk-test")
    monkeypatch.setenv("LANGFUSE_HOST", "https://langfuse.example.com")

    try:
        tracing.setup_langfuse(LangfuseConfig(enabled=True, max_text_chars=10))
        assert captured["init"] == {
            "public_key": "pk-test",
            "secret_key": "sk-test",
            "host": "https://langfuse.example.com",
        }

        with tracing.start_span(
            "story.generate.initial",
            kind="llm",
            input_value=[{"role": "user", "content": "hello"}],
            attributes={"llm.model": "gpt-4o", "skip": None},
        ) as span:
            tracing.set_span_output(span, "a very long story output")
            tracing.record_span_error(span, RuntimeError("boom"))

        kwargs, recorded = captured["spans"][0]
        assert kwargs["name"] == "story.generate.initial"
        assert kwargs["metadata"] == {"llm.model": "gpt-4o", "span.kind": "llm"}
        assert kwargs["input"].endswith("...(truncated)")
        assert recorded.updates[0] == {"output": "a very lon...(truncated)"}
        assert recorded.updates[1] == {"level": "ERROR", "status_message": "boom"}

        tracing.flush()
        assert captured["flushed"] == 1
    finally:
        tracing.setup_langfuse(LangfuseConfig(enabled=False))


def test_span_start_failure_yields_none_and_body_still_runs(monkeypatch):
    class BrokenLangfuse:
        def __init__(self, **kwargs):
            pass

        def start_as_current_span(self, **kwargs):
            raise RuntimeError("tracing backend down")

        def flush(self):
            pass

    monkeypatch.setitem(sys.modules, "langfuse", types.SimpleNamespace(Langfuse=BrokenLangfuse))

    try:
        tracing.setup_langfuse(LangfuseConfig(enabled=True, public_key="pk", secret_key="sk"))
        ran = False
        with tracing.start_span("story.generate.initial", kind="llm", input_value="x") as span:
            assert span is None
            tracing.set_span_output(span, "ignored")
            ran = True
        assert ran
    finally:
        tracing.setup_langfuse(LangfuseConfig(enabled=False))
