"""Tests for structured logging."""

from __future__ import annotations

import json
import logging
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path

from sow.logging import setup_logging, transition_fields
from sow.models import Project
from tests._factory import make_linear_config, make_machine


def _records(path: Path) -> list[dict[str, object]]:
    return [json.loads(line) for line in path.read_text().splitlines() if line.strip()]


def _flush(logger: logging.Logger) -> None:
    for handler in logger.handlers:
        handler.flush()


class TestSetupLogging:
    def test_creates_log_file(self, tmp_path: Path) -> None:
        logger = setup_logging(tmp_path)
        logger.info("test_message", extra={"command": "status", "project": "demo"})
        _flush(logger)
        record = _records(tmp_path / "sow.log")[-1]
        assert record["msg"] == "test_message"
        assert record["command"] == "status"
        assert record["project"] == "demo"
        assert record["logger"] == "sow"

    def test_idempotent_setup(self, tmp_path: Path) -> None:
        logger1 = setup_logging(tmp_path)
        logger2 = setup_logging(tmp_path)
        assert logger1 is logger2
        assert len([h for h in logger1.handlers if isinstance(h, RotatingFileHandler)]) == 1

    def test_new_directory_replaces_handler(self, tmp_path: Path) -> None:
        first, second = tmp_path / "one", tmp_path / "two"
        first.mkdir()
        second.mkdir()
        setup_logging(first)
        logger = setup_logging(second)
        handlers = [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]
        assert len(handlers) == 1
        assert handlers[0].baseFilename == str((second / "sow.log").absolute())

    def test_level_from_config(self, tmp_path: Path) -> None:
        sub = tmp_path / "lvl"
        sub.mkdir()
        logger = setup_logging(sub, "debug")
        assert logger.level == logging.DEBUG
        assert setup_logging(sub, "INFO").level == logging.INFO

    def test_unknown_level_means_info(self, tmp_path: Path) -> None:
        assert setup_logging(tmp_path, "chatty").level == logging.INFO

    def test_timestamp_is_utc_iso(self, tmp_path: Path) -> None:
        logger = setup_logging(tmp_path)
        logger.info("stamped")
        _flush(logger)
        assert str(_records(tmp_path / "sow.log")[-1]["ts"]).endswith("+00:00")

    def test_exception_type_recorded(self, tmp_path: Path) -> None:
        logger = setup_logging(tmp_path)
        try:
            raise KeyError("pr_url")
        except KeyError:
            logger.exception("lookup failed")
        _flush(logger)
        assert _records(tmp_path / "sow.log")[-1]["exception"] == "KeyError: 'pr_url'"

    def test_no_duplicate_handlers_under_concurrency(self, tmp_path: Path) -> None:
        results: list[logging.Logger] = []
        barrier = threading.Barrier(4)

        def call_setup() -> None:
            barrier.wait()
            results.append(setup_logging(tmp_path))

        threads = [threading.Thread(target=call_setup) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(results) == 4
        assert all(r is results[0] for r in results)
        file_handlers = [h for h in results[0].handlers if isinstance(h, RotatingFileHandler)]
        assert len(file_handlers) == 1


class TestTransitionLogging:
    def test_transition_fields(self) -> None:
        assert transition_fields("submit", "Draft", "Review", project="demo") == {
            "event": "submit",
            "from_state": "Draft",
            "to_state": "Review",
            "project": "demo",
        }
        assert transition_fields(None, "Draft") == {"event": "", "from_state": "Draft"}

    def test_fire_logs_transition_fields(self, tmp_path: Path) -> None:
        logger = setup_logging(tmp_path, "INFO")
        machine = make_machine(make_linear_config())
        project: Project = machine.project
        project.phases["work"].metadata["ready"] = True
        machine.fire("submit")
        _flush(logger)
        fired = [r for r in _records(tmp_path / "sow.log") if r.get("event") == "submit"]
        assert fired
        assert fired[-1]["from_state"] == "Draft"
        assert fired[-1]["to_state"] == "Review"
        assert fired[-1]["project"] == "test-project"
