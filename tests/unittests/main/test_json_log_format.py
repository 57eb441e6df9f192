import json
import logging

from sitebrain.main.job_context import clear_job_context, set_job_context
from sitebrain.main.logging import ContextJSONFormatter


def _record(message="Embedding job completed", **extra):
    record = logging.LogRecord(
        name="sitebrain.worker.embedding_tasks",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_job_context_and_extra_fields_are_merged():
    set_job_context(job_id="job-1", queue="embedding", chatbot_id="c1")
    try:
        line = ContextJSONFormatter().format(_record(embeddings_created=3))
    finally:
        clear_job_context()

    log = json.loads(line)
    assert log["message"] == "Embedding job completed"
    assert log["level"] == "info"
    assert log["job_id"] == "job-1"
    assert log["queue"] == "embedding"
    assert log["chatbot_id"] == "c1"
    assert log["embeddings_created"] == 3
    assert "lineno" not in log


def test_missing_context_values_are_left_out():
    log = json.loads(ContextJSONFormatter().format(_record(history_id=None)))

    assert "history_id" not in log
    assert "job_id" not in log
