"""
Runtime configuration read from the environment.

    TICKLIST_HOME  data directory (default ~/.ticklist)
    API_ENABLED    run the REST API next to the MCP server (default true)
    API_HOST       REST bind address (default 127.0.0.1)
    API_PORT       REST port (default 9410)
    LOG_LEVEL      logging level name (default INFO)
"""

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

log = logging.getLogger(__name__)

DEFAULT_HOME = "~/.ticklist"
DEFAULT_API_HOST = "127.0.0.1"
DEFAULT_API_PORT = 9410

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() in ("true", "1", "yes")


@dataclass
class Settings:
    home: Path
    api_enabled: bool = True
    api_host: str = DEFAULT_API_HOST
    api_port: int = DEFAULT_API_PORT
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        home = Path(env.get("TICKLIST_HOME") or DEFAULT_HOME).expanduser()

        raw_port = env.get("API_PORT", str(DEFAULT_API_PORT))
        try:
            port = int(raw_port)
        except ValueError:
            log.warning("Invalid API_PORT %r, using %d", raw_port, DEFAULT_API_PORT)
            port = DEFAULT_API_PORT

        return cls(
            home=home,
            api_enabled=_parse_bool(env.get("API_ENABLED", "true")),
            api_host=env.get("API_HOST", DEFAULT_API_HOST),
            api_port=port,
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
        )


def configure_logging(level: str = "INFO") -> None:
    """Send all log output to stderr; stdout belongs to the MCP transport."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        stream=sys.stderr,
    )
