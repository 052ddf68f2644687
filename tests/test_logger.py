"""PEDumpLogger file output and context fields."""

import json

import pytest

from shared.logger import PEDumpLogger


def _close(log):
    for handler in log.underlying.handlers:
        handler.close()


def test_json_lines_carry_operation(tmp_path):
    path = tmp_path / "logs" / "pedump.log"
    log = PEDumpLogger("test-json", log_file=path, json_logs=True, console_output=False)
    with log.operation("imports"):
        log.info("walked %d descriptors", 3, count=3)
    _close(log)

    entry = json.loads(path.read_text(encoding="utf-8").splitlines()[0])
    assert entry["message"] == "walked 3 descriptors"
    assert entry["logger"] == "pedump.test-json"
    assert entry["tool_name"] == "test-json"
    assert entry["operation"] == "imports"
    assert entry["extra"] == {"count": 3}


def test_timed_logs_completion(tmp_path):
    path = tmp_path / "timed.log"
    log = PEDumpLogger("test-timed", log_file=path, console_output=False)
    with log.timed("parse"):
        pass
    _close(log)
    assert "Completed: parse" in path.read_text(encoding="utf-8")


def test_timed_propagates_errors(tmp_path):
    log = PEDumpLogger("test-err", console_output=False)
    with pytest.raises(RuntimeError):
        with log.timed("parse"):
            raise RuntimeError("boom")


def test_level_filters(tmp_path):
    path = tmp_path / "level.log"
    log = PEDumpLogger("test-level", log_level="WARNING", log_file=path, console_output=False)
    log.info("hidden")
    log.warning("shown")
    _close(log)
    text = path.read_text(encoding="utf-8")
    assert "hidden" not in text
    assert "shown" in text
