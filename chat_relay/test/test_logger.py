"""
Logging setup tests.
"""

import logging

from rich.logging import RichHandler

from chat_relay.utils import configure_logging, get_logger


def test_get_logger_nests_under_package():
    assert get_logger("hub.server").name == "chat_relay.hub.server"
    assert get_logger("chat_relay.client").name == "chat_relay.client"
    assert get_logger().name == "chat_relay"


def test_configure_rich_console():
    logger = configure_logging(name="chat_relay.test.rich", level="debug")
    assert logger.level == logging.DEBUG
    assert [type(handler) for handler in logger.handlers] == [RichHandler]


def test_configure_plain_with_file(tmp_path):
    log_file = tmp_path / "relay.log"
    logger = configure_logging(
        name="chat_relay.test.plain",
        level="info",
        log_file=str(log_file),
        enable_rich=False,
    )
    assert not any(isinstance(handler, RichHandler) for handler in logger.handlers)

    logger.info("written to file")
    for handler in logger.handlers:
        handler.flush()
    assert "written to file" in log_file.read_text()

    # Reconfiguring replaces the handlers instead of stacking them
    logger = configure_logging(name="chat_relay.test.plain", enable_rich=False)
    assert len(logger.handlers) == 1
    for handler in list(logger.handlers):
        handler.close()
