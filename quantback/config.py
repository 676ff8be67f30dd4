from dataclasses import dataclass, field
from pathlib import Path
import os
from dotenv import load_dotenv
import logging
import sys
from typing import Optional
import structlog

from quantback.exceptions import ConfigurationError

# Load environment variables early
load_dotenv()

logger = logging.getLogger(__name__)

_LOGGING_CONFIGURED = False


def configure_logging(level: Optional[str] = None) -> None:
    """Configure stdlib logging and the structlog bridge (idempotent)."""
    global _LOGGING_CONFIGURED

    log_level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()

    # Step 1: Configure stdlib logging to use stderr
    logging.basicConfig(
        format='%(asctime)s [%(levelname)-8s] %(message)s',
        stream=sys.stderr,
        level=getattr(logging, log_level, logging.INFO),
        force=True
    )

    if _LOGGING_CONFIGURED:
        return

    # Step 2: Configure structlog
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.KeyValueRenderer(key_order=['timestamp', 'level', 'event']),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _LOGGING_CONFIGURED = True


def _get_float_env(var: str, default: str) -> float:
    """Read a float environment variable, failing loudly on junk."""
    raw = os.environ.get(var, default)
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(
            f"Environment variable {var} is not a number",
            config_key=var,
            expected="float",
            cause=e,
        ) from e


def _get_bool_env(var: str, default: str = "false") -> bool:
    return os.environ.get(var, default).lower() in ("1", "true", "yes")


@dataclass
class Config:
    """Configuration for quantback, read from the environment."""

    data_dir: Path = field(default_factory=lambda: Path(os.environ.get("QUANTBACK_DATA_DIR", "./data")))
    upload_dir: Path = field(default_factory=lambda: Path(os.environ.get("QUANTBACK_UPLOAD_DIR", "./uploads")))
    results_dir: Path = field(default_factory=lambda: Path(os.environ.get("QUANTBACK_RESULTS_DIR", "./results")))

    # Defaults applied when a run does not specify its own parameters
    initial_capital: float = field(default_factory=lambda: _get_float_env("QUANTBACK_INITIAL_CAPITAL", "100000.0"))
    commission_rate: float = field(default_factory=lambda: _get_float_env("QUANTBACK_COMMISSION_RATE", "0.001"))
    risk_free_rate: float = field(default_factory=lambda: _get_float_env("QUANTBACK_RISK_FREE_RATE", "0.02"))

    remote_data: bool = field(default_factory=lambda: _get_bool_env("QUANTBACK_REMOTE_DATA"))

    log_level: str = field(default_factory=lambda: os.environ.get("LOG_LEVEL", "INFO").upper())

    def __post_init__(self):
        if not hasattr(logging, self.log_level):
            raise ConfigurationError(
                f"Unknown log level: {self.log_level}",
                config_key="LOG_LEVEL",
                expected="DEBUG, INFO, WARNING, ERROR",
            )

    @classmethod
    def from_env(cls) -> "Config":
        """Build a fresh configuration from the current environment."""
        return cls()

    def ensure_directories(self) -> None:
        """Create the writable directories on demand."""
        for directory in [self.results_dir, self.upload_dir]:
            directory.mkdir(parents=True, exist_ok=True)


_config: Optional[Config] = None


def get_config() -> Config:
    """Return the process-wide configuration, building it on first use."""
    global _config
    if _config is None:
        _config = Config.from_env()
        logger.debug(f"Configuration loaded (data_dir={_config.data_dir})")
    return _config
