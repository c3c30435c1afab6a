import logging

import structlog

from approvals_api.config import settings


def _level() -> int:
    return getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)


def setup_logging(json_logs: bool | None = None):
    """
    Configure structlog for the approvals service.

    Console output in development, JSON lines elsewhere. Every event carries
    the service name and, inside a request, the bound request_id / user_id.
    """
    if json_logs is None:
        json_logs = settings.ENVIRONMENT != "development"
    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            _add_service,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(_level()),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # SQL echo is controlled by DEBUG on the engine; keep the stdlib logger in step
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.DEBUG else logging.WARNING
    )


def _add_service(logger, method_name, event_dict):
    event_dict.setdefault("service", settings.APP_NAME)
    return event_dict
