from __future__ import annotations

import io
import json
import logging

from djedops_workflows.orchestrator.logging import JsonFormatter, configure_logging


def _record(**extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="djedops_workflows.orchestrator.workflow.engine",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="Workflow run finished",
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_lifts_run_context() -> None:
    payload = json.loads(
        JsonFormatter().format(_record(workflow_id="wf-1", run_id="run-1", duration_ms=12))
    )

    assert payload["level"] == "INFO"
    assert payload["message"] == "Workflow run finished"
    assert payload["workflow_id"] == "wf-1"
    assert payload["run_id"] == "run-1"
    assert payload["extra"] == {"duration_ms": 12}
    assert "exception" not in payload


def test_json_formatter_without_extra() -> None:
    payload = json.loads(JsonFormatter().format(_record()))
    assert "extra" not in payload
    assert "workflow_id" not in payload


def test_configure_logging_does_not_stack_handlers() -> None:
    root = logging.getLogger()
    saved_handlers = list(root.handlers)
    saved_level = root.level
    stream = io.StringIO()
    try:
        configure_logging("debug")
        configure_logging("warning", stream=stream)
        json_handlers = [h for h in root.handlers if isinstance(h.formatter, JsonFormatter)]
        assert len(json_handlers) == 1
        assert root.level == logging.WARNING

        logging.getLogger("djedops_workflows.test").warning("Node failed", extra={"node_id": "n1"})
        line = json.loads(stream.getvalue().splitlines()[-1])
        assert line["node_id"] == "n1"
    finally:
        for handler in list(root.handlers):
            root.removeHandler(handler)
        for handler in saved_handlers:
            root.addHandler(handler)
        root.setLevel(saved_level)
