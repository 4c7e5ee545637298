from autotrade.logging_setup import logger, setup_logging


def test_setup_logging_writes_file(tmp_path):
    log_file = tmp_path / "logs" / "autotrade.log"
    setup_logging(log_file=str(log_file), level="DEBUG", enable_console=False)
    logger.info("Order executed | symbol=MOG_BRL side=buy")
    logger.complete()
    setup_logging(log_file=None, enable_console=False)

    text = log_file.read_text()
    assert "Order executed | symbol=MOG_BRL side=buy" in text
    assert "INFO" in text


def test_level_filters_messages(tmp_path):
    log_file = tmp_path / "warn.log"
    setup_logging(log_file=str(log_file), level="WARNING", enable_console=False)
    logger.info("hidden")
    logger.warning("shown")
    setup_logging(log_file=None, enable_console=False)

    text = log_file.read_text()
    assert "shown" in text
    assert "hidden" not in text
