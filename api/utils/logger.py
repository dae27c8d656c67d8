"""
Structured logging for the API and the media core.

Every record carries the service name and version so lines from several
workers can be told apart once they are shipped to one place.
"""
import logging
import sys
from typing import Any, Dict, List, Optional

import structlog
from structlog.stdlib import LoggerFactory
from structlog.types import Processor

from api.config import Settings, settings as default_settings

SERVICE_NAME = "clipchat"


class ServiceContext:
    """Adds ``service`` and ``version`` to each event without overriding bound values."""

    def __init__(self, version: str, service: str = SERVICE_NAME):
        self.service = service
        self.version = version

    def __call__(self, logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        event_dict.setdefault("service", self.service)
        event_dict.setdefault("version", self.version)
        return event_dict


def build_processors(settings: Settings) -> List[Processor]:
    """Processor chain for ``settings``; JSON lines unless DEBUG is on."""
    renderer: Processor = structlog.dev.ConsoleRenderer() if settings.DEBUG else structlog.processors.JSONRenderer()
    return [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        ServiceContext(settings.VERSION),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.CallsiteParameterAdder(
            parameters=[
                structlog.processors.CallsiteParameter.FILENAME,
                structlog.processors.CallsiteParameter.LINENO,
                structlog.processors.CallsiteParameter.FUNC_NAME,
            ]
        ),
        structlog.processors.EventRenamer("message"),
        renderer,
    ]


def setup_logging(settings: Optional[Settings] = None) -> None:
    """Route stdlib logging to stdout and configure structlog on top of it."""
    settings = settings or default_settings
    level = getattr(logging, settings.API_LOG_LEVEL.upper(), logging.INFO)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    # uvicorn and the media core share one level
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).setLevel(level)

    structlog.configure(
        processors=build_processors(settings),
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
