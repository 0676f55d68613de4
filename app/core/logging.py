"""
Logging configuration
"""

import sys
import logging
from pathlib import Path
from typing import Optional

from loguru import logger


class InterceptHandler(logging.Handler):
    """Route standard library logging records into loguru"""

    def emit(self, record):
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find the caller outside the logging module
        frame, depth = logging.currentframe(), 2
        while frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: Optional[str] = None):
    """Configure application logging"""

    # Imported lazily to avoid a config <-> logging import cycle
    from app.config import settings

    console_level = level or ("DEBUG" if settings.debug else "INFO")

    logger.remove()

    log_format = (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{extra[name]}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
        "<level>{message}</level>"
    )
    logger.configure(extra={"name": "app"})

    # Console
    logger.add(
        sys.stdout,
        format=log_format,
        level=console_level,
        colorize=True,
        backtrace=True,
        diagnose=settings.debug
    )

    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    # Application log
    logger.add(
        log_dir / "callaudit.log",
        format=log_format,
        level="INFO",
        rotation="1 day",
        retention="30 days",
        compression="zip",
        backtrace=True,
        diagnose=False
    )

    # Error log
    logger.add(
        log_dir / "callaudit_error.log",
        format=log_format,
        level="ERROR",
        rotation="1 week",
        retention="90 days",
        compression="zip",
        backtrace=True,
        diagnose=False
    )

    # Pipeline log (stage transitions and upstream calls)
    logger.add(
        log_dir / "pipeline.log",
        format=log_format,
        level="INFO",
        rotation="1 day",
        retention="14 days",
        filter=lambda record: record["extra"].get("name") in ("pipeline", "ai_service"),
        backtrace=True,
        diagnose=False
    )

    # Intercept standard library logging
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    for logger_name in ["uvicorn", "uvicorn.error", "uvicorn.access", "sqlalchemy.engine", "httpx"]:
        logging_logger = logging.getLogger(logger_name)
        logging_logger.handlers = [InterceptHandler()]

    if not settings.database_echo:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str):
    """Get a logger bound to a component name"""
    return logger.bind(name=name)


# Component loggers
api_logger = get_logger("api")
service_logger = get_logger("service")
pipeline_logger = get_logger("pipeline")
ai_logger = get_logger("ai_service")
db_logger = get_logger("database")
