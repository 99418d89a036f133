"""平台日志系统

业务模块使用 logging.getLogger(__name__)，API层使用 structlog；
两者都输出到这里配置的控制台和轮转文件处理器。
"""

import os
import sys
import logging
import logging.handlers
from typing import Optional

import structlog

from shared.config import LoggingConfig


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def _with_format(handler: logging.Handler, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    return handler


def setup_logger(
    name: str = "facility_platform",
    level: str = "INFO",
    log_file: Optional[str] = None,
    max_bytes: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
    console_output: bool = True
) -> logging.Logger:
    """
    设置平台日志系统

    Args:
        name: 日志器名称，子模块通过 logging.getLogger(__name__) 继承其处理器
        level: 日志级别
        log_file: 日志文件路径，为空时只输出到控制台
        max_bytes: 单个日志文件最大字节数
        backup_count: 备份文件数量
        console_output: 是否输出到控制台

    Returns:
        配置好的日志器
    """
    logger = logging.getLogger(name)

    # 已配置过则直接返回，避免重复输出
    if logger.handlers:
        return logger

    log_level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(log_level)

    file_handler = None
    if log_file:
        try:
            log_dir = os.path.dirname(log_file)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding='utf-8'
            )
        except OSError as e:
            # 文件不可写时退回控制台输出
            sys.stderr.write(f"无法创建日志文件 {log_file}: {e}\n")
            console_output = True

    if console_output:
        logger.addHandler(_with_format(logging.StreamHandler(sys.stdout), log_level))
    if file_handler is not None:
        logger.addHandler(_with_format(file_handler, log_level))
        logger.info(f"日志文件: {log_file}")

    return logger


def configure_structlog(logger_name: str = "facility_platform.api") -> None:
    """structlog 事件交给标准库日志器输出，事件字段渲染为 key=value"""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.KeyValueRenderer(key_order=["event", "request_id"]),
        ],
        logger_factory=lambda *args: logging.getLogger(logger_name),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def configure_logging(config: LoggingConfig, name: str = "facility_platform") -> logging.Logger:
    """根据配置对象初始化日志"""
    logger = setup_logger(
        name=name,
        level=config.level,
        log_file=config.file,
        max_bytes=config.max_bytes,
        backup_count=config.backup_count,
        console_output=config.console,
    )
    configure_structlog(f"{name}.api")
    return logger
