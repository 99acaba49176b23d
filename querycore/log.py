"""Log helpers: redaction of DSNs and parameters, and logging setup."""

import logging
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError as URLArgumentError

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def sanitize_dsn(dsn: str) -> str:
    """Mask the password in a DSN.

    SQLAlchemy URLs are re-rendered with the password hidden. Anything that
    does not parse as a URL is treated as a ``key=value;`` list and the
    ``password``/``pwd`` keys are masked.
    """
    if '://' in dsn:
        try:
            return make_url(dsn).render_as_string(hide_password=True)
        except URLArgumentError:
            pass

    safe = []
    for part in dsn.split(';'):
        p = part.strip()
        if not p:
            continue
        key, _, _ = p.partition('=')
        key = key.strip().lower()
        if key in ('password', 'pwd'):
            safe.append(f"{key}=***")
        else:
            safe.append(p)
    return ';'.join(safe)


def _type_name(value: Any) -> str:
    if value is None:
        return 'null'
    if isinstance(value, bool):
        return 'bool'
    if isinstance(value, int):
        return 'int'
    if isinstance(value, float):
        return 'float'
    if isinstance(value, str):
        return 'string'
    return type(value).__name__


def _stringify(value: Any) -> str:
    if value is None:
        return 'null'
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (int, float, Decimal, str)):
        return str(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (list, tuple, set, frozenset, dict)):
        return f"array({len(value)})"
    return type(value).__name__


def sanitize_params(params: Sequence[Any], max_len: int = 128) -> List[Dict[str, str]]:
    """Render parameters for logs and hook contexts.

    Args:
        params: Positional parameter values.
        max_len: Values longer than this are truncated with an ellipsis.

    Returns:
        One ``{"type": ..., "value": ...}`` dict per parameter.
    """
    out = []
    for value in params:
        text = _stringify(value)
        if len(text) > max_len:
            text = text[:max_len] + '…'
        out.append({'type': _type_name(value), 'value': text})
    return out


def configure_logging(level: Optional[str] = None) -> None:
    """Set up root logging for applications embedding querycore.

    Args:
        level: Log level name. If None, read from ``QUERYCORE_LOG_LEVEL``.
    """
    if level is None:
        from querycore.config.models import EnvironmentSettings
        level = EnvironmentSettings().log_level

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format=LOG_FORMAT
    )
