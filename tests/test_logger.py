import json
import logging
import threading
from logging.handlers import RotatingFileHandler

from binload.core.builder import BinaryBuilder, load_binary
from binload.core.errors import OpenError
from shared.logger import BinloadLogger


def _records(path):
    return [json.loads(line) for line in path.read_text().splitlines()]


def test_json_file_logging(tmp_path):
    log_file = tmp_path / "logs" / "binload.log"
    log = BinloadLogger("test_json", log_level="DEBUG", log_file=log_file,
                        json_logs=True, console_output=False)
    with log.operation("symbols"):
        log.info("Read %d entries", 3, table="static")
    log.warning("outside")

    first, second = _records(log_file)
    assert first["message"] == "Read 3 entries"
    assert first["tool_name"] == "test_json"
    assert first["operation"] == "symbols"
    assert first["extra"] == {"table": "static"}
    assert "operation" not in second


def test_operation_is_per_thread():
    log = BinloadLogger("test_threads", console_output=False)
    seen = []

    def worker():
        seen.append(log.current_operation)

    with log.operation("sections"):
        t = threading.Thread(target=worker)
        t.start()
        t.join()
        assert log.current_operation == "sections"
    assert seen == [None]
    assert log.current_operation is None


def test_silent_logger_has_null_handler():
    log = BinloadLogger("test_silent", console_output=False)
    assert log.underlying.handlers
    assert not log.underlying.propagate


def test_failed_load_is_logged(tmp_path):
    log_file = tmp_path / "load.log"
    log = BinloadLogger("test_load", log_level="DEBUG", log_file=log_file,
                        json_logs=True, console_output=False)
    try:
        BinaryBuilder(logger=log).build(tmp_path / "missing")
    except OpenError:
        pass

    errors = [r for r in _records(log_file) if r["level"] == "ERROR"]
    assert len(errors) == 1
    assert errors[0]["extra"]["stage"] == "open"
    assert "OpenError" in errors[0]["message"]


def test_default_loggers_keep_application_handlers(tmp_path, elf64_path):
    log_file = tmp_path / "app.log"
    log = BinloadLogger("loader", log_level="DEBUG", log_file=log_file,
                        json_logs=True, console_output=False)
    handlers = list(log.underlying.handlers)

    with load_binary(elf64_path) as binary:
        assert binary.symbols
    log.info("after load")

    assert log.underlying.handlers == handlers
    messages = [r["message"] for r in _records(log_file)]
    assert messages[-1] == "after load"
    assert any(m.startswith("Loaded ") for m in messages)


def test_reconfiguring_closes_replaced_handlers(tmp_path):
    first = BinloadLogger("test_reconf", log_file=tmp_path / "a.log", console_output=False)
    old = [h for h in first.underlying.handlers if isinstance(h, RotatingFileHandler)]

    BinloadLogger("test_reconf", log_file=tmp_path / "b.log", console_output=False)

    assert old and old[0].stream is None
    assert old[0] not in first.underlying.handlers


def test_attach_leaves_logger_untouched():
    configured = BinloadLogger("test_attach", log_level="ERROR", console_output=False)
    before = list(configured.underlying.handlers)

    attached = BinloadLogger.attach("test_attach")

    assert attached.underlying is configured.underlying
    assert attached.underlying.handlers == before
    assert attached.underlying.level == logging.ERROR
