#!/usr/bin/env python3
"""
PaperReview Configuration & Logging Module
==========================================
Centralized configuration, structured logging, and the error hierarchy
shared by the heuristics engines, the review workflow and the HTTP layer.

Every setting can be overridden with a PRS_* environment variable; see
AppConfig.from_env for the full list.
"""

import os
import sys
import json
import logging
import uuid
import time
import threading
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Optional, Dict, Any, List, Tuple
from pathlib import Path
from dataclasses import dataclass, field
from contextlib import contextmanager

# =============================================================================
# CONFIGURATION CONSTANTS
# =============================================================================
DEFAULT_MAX_UPLOAD_MB = 20
UPLOAD_CEILING_MB = 200             # anything above is reported by validate()
MIN_SECRET_KEY_LENGTH = 32
LOG_ROTATE_BYTES = 5 * 1024 * 1024
LOG_ROTATE_KEEP = 5

DEFAULT_MAX_UPLOAD_BYTES = DEFAULT_MAX_UPLOAD_MB * 1024 * 1024
UPLOAD_CEILING_BYTES = UPLOAD_CEILING_MB * 1024 * 1024

STORAGE_BACKENDS = ('memory', 'sqlite')
LOG_FORMATS = ('json', 'text')

__version__ = "1.2.0"
VERSION = __version__
APP_NAME = "PaperReview"

PROJECT_DIR = Path(__file__).parent.parent


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() == 'true'


def _is_production() -> bool:
    return os.environ.get('PRS_ENV', 'development').lower() == 'production'


# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================

@dataclass
class AppConfig:
    """Runtime settings for the API server, storage and logging."""

    # Server
    host: str = "127.0.0.1"
    port: int = 5060
    debug: bool = False

    # Sessions and uploads
    secret_key: str = field(default_factory=lambda: os.environ.get('PRS_SECRET_KEY', ''))
    max_content_length: int = DEFAULT_MAX_UPLOAD_BYTES
    allowed_extensions: tuple = ('.pdf', '.txt')
    upload_dir: Path = field(default_factory=lambda: PROJECT_DIR / 'uploads')

    # Storage
    storage_backend: str = "memory"  # memory | sqlite
    database_path: Path = field(default_factory=lambda: PROJECT_DIR / 'data' / 'peer_review.db')
    seed_default_professor: bool = True

    # Logging
    log_dir: Path = field(default_factory=lambda: PROJECT_DIR / 'logs')
    log_level: str = "INFO"
    log_format: str = "json"  # json | text
    log_to_file: bool = True
    log_to_console: bool = True

    def __post_init__(self):
        self.upload_dir = Path(self.upload_dir)
        self.log_dir = Path(self.log_dir)
        self.database_path = Path(self.database_path)

        if not self.secret_key:
            import secrets
            self.secret_key = secrets.token_hex(32)

        if _is_production():
            self.debug = False
            self.log_level = "WARNING"

    @classmethod
    def from_env(cls) -> 'AppConfig':
        """Build a config from PRS_* environment variables."""
        env = os.environ
        kwargs: Dict[str, Any] = dict(
            host=env.get('PRS_HOST', '127.0.0.1'),
            port=int(env.get('PRS_PORT', '5060')),
            debug=_env_flag('PRS_DEBUG', 'false'),
            secret_key=env.get('PRS_SECRET_KEY', ''),
            max_content_length=int(env.get('PRS_MAX_UPLOAD', str(DEFAULT_MAX_UPLOAD_BYTES))),
            storage_backend=env.get('PRS_STORAGE', 'memory').lower(),
            seed_default_professor=_env_flag('PRS_SEED_PROFESSOR', 'true'),
            log_level=env.get('PRS_LOG_LEVEL', 'INFO'),
            log_format=env.get('PRS_LOG_FORMAT', 'json'),
            log_to_file=_env_flag('PRS_LOG_TO_FILE', 'true'),
            log_to_console=_env_flag('PRS_LOG_TO_CONSOLE', 'true'),
        )
        for var, attr in (('PRS_DATABASE', 'database_path'),
                          ('PRS_UPLOAD_DIR', 'upload_dir'),
                          ('PRS_LOG_DIR', 'log_dir')):
            if env.get(var):
                kwargs[attr] = Path(env[var])
        return cls(**kwargs)

    def validate(self) -> Tuple[bool, List[str]]:
        """Return (is_valid, problems) without raising."""
        problems = []

        if self.debug and _is_production():
            problems.append("debug must be off when PRS_ENV=production")
        if len(self.secret_key) < MIN_SECRET_KEY_LENGTH:
            problems.append(f"secret_key shorter than {MIN_SECRET_KEY_LENGTH} characters")
        if self.max_content_length > UPLOAD_CEILING_BYTES:
            problems.append(f"max_content_length above {UPLOAD_CEILING_MB}MB")
        if self.storage_backend not in STORAGE_BACKENDS:
            problems.append(f"storage_backend '{self.storage_backend}' is not one of "
                            f"{', '.join(STORAGE_BACKENDS)}")
        if self.log_format not in LOG_FORMATS:
            problems.append(f"log_format '{self.log_format}' is not one of {', '.join(LOG_FORMATS)}")

        return not problems, problems


_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Process-wide config, loaded from the environment on first use."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def reset_config():
    """Forget the cached config so the next get_config() rereads the env."""
    global _config
    _config = None


# =============================================================================
# STRUCTURED LOGGING
# =============================================================================

_RESERVED_RECORD_KEYS = frozenset((
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs',
    'pathname', 'process', 'processName', 'relativeCreated',
    'stack_info', 'thread', 'threadName', 'exc_info', 'exc_text',
    'message', 'taskName',
))


class JsonFormatter(logging.Formatter):
    """One JSON object per record; `extra` fields become top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            'timestamp': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        entry.update(
            (key, value) for key, value in record.__dict__.items()
            if key not in _RESERVED_RECORD_KEYS
        )
        if record.exc_info:
            entry['traceback'] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _build_handlers(name: str, config: AppConfig) -> List[logging.Handler]:
    if config.log_format == 'json':
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter('%(asctime)s [%(levelname)s] %(name)s - %(message)s')

    handlers: List[logging.Handler] = []
    if config.log_to_console:
        handlers.append(logging.StreamHandler(sys.stderr))
    if config.log_to_file:
        config.log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(
            config.log_dir / f"{name.lower()}.log",
            maxBytes=LOG_ROTATE_BYTES,
            backupCount=LOG_ROTATE_KEEP,
            encoding='utf-8',
        ))
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


class StructuredLogger:
    """
    Logger wrapper that tags every record with a per-thread correlation id.

    Handlers are attached on first use, so importing a module that owns a
    logger touches neither the console nor the log directory. Keyword
    arguments to the log methods are attached as structured fields, so they
    must not reuse LogRecord attribute names (name, module, ...).
    """

    _local = threading.local()
    _instances: List['StructuredLogger'] = []
    _instances_lock = threading.Lock()

    def __init__(self, name: str, config: Optional[AppConfig] = None):
        self.name = name
        self.config = config or get_config()
        self.logger = logging.getLogger(f"peer_review.{name}")
        self.logger.propagate = False
        self._configured = False
        self._configure_lock = threading.Lock()
        with self._instances_lock:
            self._instances.append(self)

    def configure(self, config: Optional[AppConfig] = None):
        """Rebuild level and handlers, optionally from a new config."""
        with self._configure_lock:
            if config is not None:
                self.config = config
            for handler in list(self.logger.handlers):
                self.logger.removeHandler(handler)
                handler.close()
            self.logger.setLevel(getattr(logging, self.config.log_level.upper(), logging.INFO))
            for handler in _build_handlers(self.name, self.config):
                self.logger.addHandler(handler)
            self._configured = True

    @classmethod
    def set_correlation_id(cls, correlation_id: str):
        cls._local.correlation_id = correlation_id

    @classmethod
    def get_correlation_id(cls) -> str:
        return getattr(cls._local, 'correlation_id', None) or uuid.uuid4().hex[:8]

    @classmethod
    def new_correlation_id(cls) -> str:
        """Start a new correlation scope for the current thread."""
        correlation_id = uuid.uuid4().hex[:12]
        cls.set_correlation_id(correlation_id)
        return correlation_id

    def _log(self, level: int, message: str, exc_info: bool = False, **fields):
        if not self._configured:
            self.configure()
        extra = {'correlation_id': self.get_correlation_id(), **fields}
        self.logger.log(level, message, exc_info=exc_info, extra=extra)

    def debug(self, message: str, **kwargs):
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs):
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs):
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, exc_info: bool = False, **kwargs):
        self._log(logging.ERROR, message, exc_info=exc_info, **kwargs)

    def exception(self, message: str, **kwargs):
        self._log(logging.ERROR, message, exc_info=True, **kwargs)

    @contextmanager
    def log_operation(self, operation: str, **context):
        """Time a block; rejected transitions log at WARNING, crashes with traceback."""
        started = time.perf_counter()
        self.debug(f"{operation} started", operation=operation, status='started', **context)

        def elapsed_ms() -> float:
            return round((time.perf_counter() - started) * 1000, 2)

        try:
            yield
        except PeerReviewError as e:
            self.warning(f"{operation} rejected: {e}", operation=operation, status='rejected',
                         error_code=e.code, duration_ms=elapsed_ms(), **context)
            raise
        except Exception as e:
            self.exception(f"{operation} failed: {e}", operation=operation, status='failed',
                           duration_ms=elapsed_ms(), **context)
            raise
        self.info(f"{operation} completed", operation=operation, status='completed',
                  duration_ms=elapsed_ms(), **context)


def get_logger(name: str) -> StructuredLogger:
    """Structured logger for a peer_review submodule."""
    return StructuredLogger(name, get_config())


def configure_logging(config: AppConfig):
    """Point every peer_review logger created so far at `config`."""
    with StructuredLogger._instances_lock:
        loggers = list(StructuredLogger._instances)
    for structured in loggers:
        structured.configure(config)


# =============================================================================
# ERROR HANDLING
# =============================================================================

class PeerReviewError(Exception):
    """
    Base error for the review workflow and API.

    code and status_code drive the JSON error response; details carries
    machine-readable context such as the offending field.
    """

    def __init__(self, message: str, code: str = "UNKNOWN_ERROR",
                 status_code: int = 500, details: Optional[Dict] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Body of the JSON error response."""
        return {
            'success': False,
            'error': {'code': self.code, 'message': self.message, 'details': self.details},
        }


class ValidationError(PeerReviewError):
    """Rejected input value."""
    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        super().__init__(message, code="VALIDATION_ERROR", status_code=400,
                         details={'field': field, **kwargs})

    @property
    def field(self) -> Optional[str]:
        return self.details.get('field')


class FileError(PeerReviewError):
    """Upload or stored document problem."""
    def __init__(self, message: str, file_path: Optional[str] = None, **kwargs):
        super().__init__(message, code="FILE_ERROR", status_code=400,
                         details={'file_path': file_path, **kwargs})


class AuthenticationError(PeerReviewError):
    """No valid session or bad credentials."""
    def __init__(self, message: str = "Authentication required", **kwargs):
        super().__init__(message, code="AUTH_ERROR", status_code=401, details=kwargs)


class ForbiddenError(PeerReviewError):
    """Actor lacks the role, institute or ownership a transition needs."""
    def __init__(self, message: str = "Permission denied", **kwargs):
        super().__init__(message, code="FORBIDDEN", status_code=403, details=kwargs)


class NotFoundError(PeerReviewError):
    """Referenced record does not exist."""
    def __init__(self, message: str = "Not found", resource: Optional[str] = None,
                 resource_id: Optional[int] = None, **kwargs):
        super().__init__(message, code="NOT_FOUND", status_code=404,
                         details={'resource': resource, 'id': resource_id, **kwargs})


class ConflictError(PeerReviewError):
    """Transition rejected because of the record's current state."""
    def __init__(self, message: str, **kwargs):
        super().__init__(message, code="CONFLICT", status_code=409, details=kwargs)
