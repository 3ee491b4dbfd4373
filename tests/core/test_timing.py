"""
Tests for urp.core.timing.log_step.
"""

import pytest
from structlog.testing import capture_logs

from urp.core.timing import log_step


class TestLogStep:
    def test_end_event_carries_duration_and_metrics(self):
        with capture_logs() as logs:
            with log_step("executor.step", index=2, step="rollup") as timer:
                pass
        [end] = [entry for entry in logs if entry["event"] == "executor.step.end"]
        assert end["index"] == 2
        assert end["step"] == "rollup"
        assert end["duration_ms"] >= 0
        assert timer.duration_ms >= 0
        assert timer.status == "ok"

    def test_error_event_and_reraise(self):
        with capture_logs() as logs:
            with pytest.raises(KeyError):
                with log_step("executor.step", index=0) as timer:
                    raise KeyError("accounts")
        events = [entry["event"] for entry in logs]
        assert "executor.step.error" in events
        assert "executor.step.end" not in events
        [error] = [entry for entry in logs if entry["event"] == "executor.step.error"]
        assert error["status"] == "error"
        assert error["error_type"] == "KeyError"
        assert timer.status == "error"
