"""
Настройка логирования приложения через Loguru.

Стандартный logging (uvicorn, sqlalchemy) перехватывается и
перенаправляется в loguru, чтобы все сообщения шли через один sink.
"""

import logging
import sys

from loguru import logger

from linkshortener.config import settings


class InterceptHandler(logging.Handler):
    """Перенаправляет записи стандартного logging в loguru"""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def setup_logging() -> None:
    """Конфигурирует loguru и перехват стандартного logging"""
    logger.remove()

    if settings.LOG_JSON:
        logger.add(sys.stderr, level=settings.LOG_LEVEL.upper(), serialize=True)
    else:
        logger.add(
            sys.stderr,
            level=settings.LOG_LEVEL.upper(),
            format=settings.LOG_FORMAT,
            backtrace=True,
            diagnose=settings.TESTING,
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    for log_name in ["uvicorn", "uvicorn.access", "uvicorn.error", "fastapi"]:
        logging_logger = logging.getLogger(log_name)
        logging_logger.handlers = [InterceptHandler()]
        logging_logger.propagate = False
