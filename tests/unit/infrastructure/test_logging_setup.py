"""Tests for the structlog/stdlib logging configuration."""

from __future__ import annotations

import logging

import structlog

from jackettio.infrastructure.config import AppConfig
from jackettio.infrastructure.logging.setup import (
    _add_record_created_timestamp_utc,
    _drop_color_message,
    _LevelRangeFilter,
    build_logging_config,
)


def _record(level: int) -> logging.LogRecord:
    return logging.LogRecord("x", level, __file__, 1, "msg", None, None)


class TestBuildLoggingConfig:
    def test_levels_applied_to_preconfigured_loggers(self) -> None:
        cfg = build_logging_config(AppConfig(log_level="DEBUG"))
        assert cfg["root"] == {"handlers": ["default"], "level": "DEBUG"}
        assert {c["level"] for c in cfg["loggers"].values()} == {"DEBUG"}

    def test_handlers_render_through_structlog(self) -> None:
        cfg = build_logging_config(AppConfig())
        assert cfg["handlers"]["default"]["formatter"] == "structlog"
        assert cfg["handlers"]["access"]["formatter"] == "structlog"

    def test_renderer_follows_environment(self) -> None:
        prod = build_logging_config(AppConfig(environment="prod"))
        dev = build_logging_config(AppConfig(environment="dev"))
        assert isinstance(
            prod["formatters"]["structlog"]["processors"][-1],
            structlog.processors.JSONRenderer,
        )
        assert isinstance(
            dev["formatters"]["structlog"]["processors"][-1], structlog.dev.ConsoleRenderer
        )

    def test_base_config_not_mutated(self) -> None:
        build_logging_config(AppConfig(log_level="ERROR"))
        cfg = build_logging_config(AppConfig(log_level="INFO"))
        assert cfg["loggers"]["uvicorn"]["level"] == "INFO"


class TestProcessors:
    def test_color_message_dropped(self) -> None:
        out = _drop_color_message(None, None, {"event": "e", "color_message": "\x1b[1me"})
        assert out == {"event": "e"}

    def test_foreign_record_timestamp(self) -> None:
        record = _record(logging.INFO)
        record.created = 0.0
        out = _add_record_created_timestamp_utc(None, None, {"_record": record})
        assert out["timestamp"] == "1970-01-01T00:00:00Z"

    def test_level_range_filter(self) -> None:
        low = _LevelRangeFilter(max_level=logging.WARNING)
        high = _LevelRangeFilter(min_level=logging.ERROR)
        assert low.filter(_record(logging.WARNING))
        assert not low.filter(_record(logging.ERROR))
        assert high.filter(_record(logging.CRITICAL))
        assert not high.filter(_record(logging.INFO))
