"""Tests for configuration loading, logging setup and the event bus."""

import logging

import pytest

from mockvisa.config import get_config
from mockvisa.interview.events import (
    EventType,
    InterviewEventBus,
    ProviderErrorEvent,
    create_event_bus,
)
from mockvisa.utils import setup_logging

ENV_KEYS = (
    "VAPI_PRIVATE_KEY", "VAPI_PUBLIC_KEY", "VAPI_ASSISTANT_ID", "GEMINI_API_KEY",
    "GOOGLE_CLOUD_PROJECT", "MOCKVISA_DATA_DIR", "MODEL_NAME",
)


@pytest.fixture
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


class TestGetConfig:
    def test_reads_environment(self, clean_env) -> None:
        clean_env.setenv("VAPI_PRIVATE_KEY", "sk")
        clean_env.setenv("VAPI_PUBLIC_KEY", "pk")
        clean_env.setenv("GEMINI_API_KEY", "gk")
        clean_env.setenv("MOCKVISA_DATA_DIR", "/tmp/mockvisa-test")

        config = get_config()

        assert config.vapi_private_key == "sk"
        assert config.data_dir == "/tmp/mockvisa-test"
        assert config.model_name == "gemini-2.5-flash"
        assert config.provider_timeout > 0 and config.llm_timeout > 0
        assert not config.uses_vertex

    def test_vertex_when_only_project(self, clean_env) -> None:
        clean_env.setenv("VAPI_PRIVATE_KEY", "sk")
        clean_env.setenv("VAPI_PUBLIC_KEY", "pk")
        clean_env.setenv("GOOGLE_CLOUD_PROJECT", "proj")
        assert get_config().uses_vertex

    def test_missing_vapi_keys(self, clean_env) -> None:
        clean_env.setenv("GEMINI_API_KEY", "gk")
        with pytest.raises(ValueError):
            get_config()

    def test_missing_engine_settings(self, clean_env) -> None:
        clean_env.setenv("VAPI_PRIVATE_KEY", "sk")
        clean_env.setenv("VAPI_PUBLIC_KEY", "pk")
        with pytest.raises(ValueError):
            get_config()


class TestSetupLogging:
    def test_file_gets_records_console_stays_quiet(self, tmp_path) -> None:
        log_file = tmp_path / "logs" / "pipeline.log"
        root = logging.getLogger()
        saved, saved_level = root.handlers[:], root.level
        try:
            setup_logging(str(log_file), "INFO")
            logging.getLogger("retrieval").info("session settled")
            logging.getLogger("retrieval").debug("not written")
            for handler in root.handlers:
                handler.flush()
        finally:
            for handler in root.handlers:
                handler.close()
            root.handlers[:] = saved
            root.setLevel(saved_level)

        content = log_file.read_text()
        assert "INFO retrieval - session settled" in content
        assert "not written" not in content


class TestEventBus:
    def test_failing_handler_does_not_block_others(self) -> None:
        bus = InterviewEventBus()
        seen = []

        def broken(event):
            raise RuntimeError("handler bug")

        bus.subscribe(EventType.PROVIDER_ERROR, broken)
        bus.subscribe(EventType.PROVIDER_ERROR, seen.append)
        bus.emit(ProviderErrorEvent("s1", 0.0, "ICE failed"))

        assert len(seen) == 1
        assert seen[0].data == {"message": "ICE failed"}

    def test_unsubscribe(self) -> None:
        bus = create_event_bus(log_events=False)
        seen = []
        bus.subscribe(EventType.PROVIDER_ERROR, seen.append)
        bus.unsubscribe(EventType.PROVIDER_ERROR, seen.append)
        bus.emit(ProviderErrorEvent("s1", 0.0, "ICE failed"))
        assert seen == []
