"""Structured logging configuration using structlog.

Provides JSON-formatted logs with consistent context including:
- publication_id: Identifier of the publication being parsed (when known)
- package_path: Path of the OPF package document inside the container
- resource_href: Resource currently being read or paginated
- timestamp: ISO8601 formatted timestamp

Usage:
    from quire.logging import get_logger, configure_logging

    # Configure once at startup
    configure_logging()

    # Get a logger for a module
    logger = get_logger(__name__)
    logger.warning("manifest_item_missing_href", item_id="ch1")
"""

import logging
import sys
from contextvars import ContextVar

import structlog

# Context variables for publication-scoped logging
publication_id_var: ContextVar[str | None] = ContextVar("publication_id", default=None)
package_path_var: ContextVar[str | None] = ContextVar("package_path", default=None)
resource_href_var: ContextVar[str | None] = ContextVar("resource_href", default=None)


def add_publication_context(logger: logging.Logger, method_name: str, event_dict: dict) -> dict:
    """Add publication context to all log entries.

    Injects all non-None ContextVar values into the log event dict.
    """
    publication_id = publication_id_var.get()
    package_path = package_path_var.get()
    resource_href = resource_href_var.get()

    if publication_id:
        event_dict["publication_id"] = publication_id
    if package_path:
        event_dict["package_path"] = package_path
    if resource_href:
        event_dict.setdefault("resource_href", resource_href)

    return event_dict


def configure_logging(json_format: bool = True) -> None:
    """Configure structlog for the library.

    Args:
        json_format: If True, output JSON logs. If False, output console-friendly logs.
    """
    # Shared processors for both stdlib and structlog loggers
    shared_processors = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        add_publication_context,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=shared_processors
        + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.INFO)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger for the given name.

    Args:
        name: Logger name (typically __name__).

    Returns:
        A bound structlog logger.
    """
    return structlog.get_logger(name)


def set_publication_context(publication_id: str | None, package_path: str | None = None) -> None:
    """Set publication context for the current thread or task.

    Args:
        publication_id: The publication identifier (may be unknown early on).
        package_path: Path of the package document (optional).
    """
    publication_id_var.set(publication_id)
    if package_path is not None:
        package_path_var.set(package_path)


def set_resource_context(href: str | None) -> None:
    """Set the resource currently being processed.

    Args:
        href: Package-relative href of the resource.
    """
    resource_href_var.set(href)


def clear_publication_context() -> None:
    """Clear all publication-scoped context once parsing is done."""
    publication_id_var.set(None)
    package_path_var.set(None)
    resource_href_var.set(None)


def get_publication_id() -> str | None:
    """Get the current publication ID from context."""
    return publication_id_var.get()
