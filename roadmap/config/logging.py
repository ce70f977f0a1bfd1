"""structlog configuration shared by the CLI and library callers."""

import logging

import structlog


def configure_logging(level: str = "INFO", json_output: bool = True) -> None:
    """Route structlog through stdlib logging at the given level."""
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format="%(message)s")

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
