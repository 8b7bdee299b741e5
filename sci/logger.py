import logging
import sys

import structlog

# Server loggers that would otherwise print with their own formatting.
SERVER_LOGGERS = ("uvicorn.error", "uvicorn.access")

TIMESTAMPER = structlog.processors.TimeStamper(fmt="iso")


def setup_logging(debug: bool) -> None:
    """Route structlog and stdlib records through one stderr handler.

    stdout is left to the local simulation report.
    """
    log_level = logging.DEBUG if debug else logging.INFO

    structlog.configure(
        processors=[
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            TIMESTAMPER,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=[
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                TIMESTAMPER,
            ],
            processor=structlog.dev.ConsoleRenderer()
            if debug
            else structlog.processors.JSONRenderer(),
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(log_level)

    for name in SERVER_LOGGERS:
        server_logger = logging.getLogger(name)
        server_logger.handlers = []
        server_logger.propagate = True

    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)
