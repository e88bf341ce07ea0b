"""Tests for the depth-indented log accumulator."""

from __future__ import annotations

import logging

import pytest

from reflectorpy.logs import LogEntry, Logs, LogType, padding


class TestLogs:
    """Recording, filtering and rendering entries."""

    def test_entries_keep_order_and_depth(self) -> None:
        logs = Logs()
        logs.info("start")
        logs.warning("careful", 1)
        logs.error("failed", 2)

        assert [e.message for e in logs] == ["start", "careful", "failed"]
        assert [e.depth for e in logs] == [0, 1, 2]
        assert len(logs) == 3

    @pytest.mark.parametrize(
        ("method", "log_type"),
        [
            ("trace", LogType.TRACE),
            ("debug", LogType.DEBUG),
            ("info", LogType.INFO),
            ("success", LogType.SUCCESS),
            ("warning", LogType.WARNING),
            ("error", LogType.ERROR),
            ("critical", LogType.CRITICAL),
        ],
    )
    def test_severity_helpers(self, method: str, log_type: LogType) -> None:
        logs = Logs()
        getattr(logs, method)("message")
        assert logs.entries == [LogEntry(depth=0, message="message", type=log_type)]

    def test_of_type_and_has_errors(self) -> None:
        logs = Logs()
        logs.info("ok")
        assert not logs.has_errors

        logs.error("bad")
        assert logs.has_errors
        assert [e.message for e in logs.of_type(LogType.ERROR)] == ["bad"]

    def test_str_indents_by_depth(self) -> None:
        logs = Logs()
        logs.info("root")
        logs.success("child", 1)
        assert str(logs) == "[Info] root\n  [Success] child"

    def test_empty_logs_are_falsy(self) -> None:
        assert not Logs()

    def test_forwarded_to_stdlib_logger(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.DEBUG, logger="reflectorpy"):
            Logs().warning("forwarded", 1)
        assert "  [Warning] forwarded" in caplog.messages

    def test_padding(self) -> None:
        assert padding(0) == ""
        assert padding(2) == "    "
        assert padding(-1) == ""
