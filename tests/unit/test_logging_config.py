import logging
from unittest.mock import patch

from properties_translator.logging_config import LOGGER_NAME, TqdmLoggingHandler, setup_logger


def test_console_only_logger():
    logger = setup_logger("debug", None, True)

    assert logger.name == LOGGER_NAME
    assert logger.level == logging.DEBUG
    assert logger.propagate is False
    assert [type(handler) for handler in logger.handlers] == [TqdmLoggingHandler]


def test_file_handler_is_added(tmp_path):
    log_path = tmp_path / "logs" / "service.log"
    logger = setup_logger("INFO", str(log_path), False)
    try:
        logging.getLogger(f"{LOGGER_NAME}.web").info("request handled")
        for handler in logger.handlers:
            handler.flush()
        assert "request handled" in log_path.read_text(encoding="utf-8")
        assert " - properties_translator.web - INFO - " in log_path.read_text(encoding="utf-8")
    finally:
        for handler in logger.handlers:
            handler.close()
        logger.handlers.clear()


def test_repeated_setup_does_not_duplicate_handlers():
    setup_logger("INFO", None, True)
    logger = setup_logger("INFO", None, True)
    assert len(logger.handlers) == 1


def test_unknown_level_falls_back_to_info():
    assert setup_logger("chatty", None, False).level == logging.INFO


def test_tqdm_handler_writes_through_tqdm():
    handler = TqdmLoggingHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "hello", None, None)

    with patch("properties_translator.logging_config.tqdm.write") as mock_write:
        handler.emit(record)

    assert mock_write.call_args.args[0] == "hello"
