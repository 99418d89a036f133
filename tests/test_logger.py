"""日志系统测试"""

import logging

import structlog

from shared.logger import configure_structlog, setup_logger


class TestSetupLogger:
    """测试日志器配置"""

    def test_file_handler(self, tmp_path):
        """测试日志写入轮转文件，重复配置不叠加处理器"""
        log_file = tmp_path / "logs" / "cleanguard.log"
        logger = setup_logger(name="cleanguard_test.file", log_file=str(log_file), console_output=False)
        try:
            logger.info("reminder sweep finished")
            for handler in logger.handlers:
                handler.flush()

            assert "reminder sweep finished" in log_file.read_text(encoding="utf-8")
            assert setup_logger(name="cleanguard_test.file") is logger
            assert len(logger.handlers) == 1
        finally:
            for handler in list(logger.handlers):
                handler.close()
                logger.removeHandler(handler)

    def test_level(self):
        logger = setup_logger(name="cleanguard_test.level", level="warning")
        try:
            assert logger.level == logging.WARNING
        finally:
            for handler in list(logger.handlers):
                logger.removeHandler(handler)


class TestStructlog:
    """测试结构化日志转发到标准库"""

    def test_events_routed_to_stdlib(self, caplog):
        configure_structlog("cleanguard_test.api")

        with caplog.at_level(logging.INFO, logger="cleanguard_test.api"):
            structlog.get_logger().info("request_started", request_id="r-1", path="/health")

        records = [r for r in caplog.records if r.name == "cleanguard_test.api"]
        assert len(records) == 1
        message = records[0].getMessage()
        assert message.startswith("event='request_started' request_id='r-1'")
        assert "path='/health'" in message
