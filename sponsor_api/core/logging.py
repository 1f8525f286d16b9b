import logging
import sys

import structlog

# Chatty at INFO; request and provider outcomes are logged by the service itself.
_QUIET_LOGGERS = ("httpx", "httpcore", "googleapiclient.discovery_cache")


def _service_processor(service: str):
    def add_service(logger, method_name, event_dict):
        event_dict.setdefault("service", service)
        return event_dict

    return add_service


def configure_logging(debug: bool = False, service: str = "sponsor-api") -> None:
    log_level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            _service_processor(service),
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer() if debug else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    return structlog.get_logger(name)


def bind_request_id(request_id: str) -> None:
    # New request: drop anything bound by the previous one on this context.
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id)


def bind_order_id(order_id: str) -> None:
    """Tag every following log line of this request with the order it concerns."""
    structlog.contextvars.bind_contextvars(order_id=order_id)
