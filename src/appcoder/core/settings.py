"""Environment-driven settings for the HTTP wiring.

The coordinators never read the environment themselves; the API layer builds
them from an :class:`AppSettings` instance so tests can pass explicit values.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

logger = logging.getLogger("appcoder.settings")

DEFAULT_COMPLETION_URL = "http://127.0.0.1:3000/api/generateCode"
DEFAULT_SHARE_DOMAIN = "http://localhost:3000"
DEFAULT_PUBLISH_MIN_DURATION_MS = 1000.0
DEFAULT_CONNECT_TIMEOUT = 3.0
DEFAULT_READ_TIMEOUT = 60.0


def _float_env(env: Mapping[str, str], key: str, default: float) -> float:
    raw = (env.get(key) or "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r; using %s", key, raw, default)
        return default
    if value < 0:
        logger.warning("Ignoring negative %s=%r; using %s", key, raw, default)
        return default
    return value


@dataclass(frozen=True)
class AppSettings:
    completion_url: str = DEFAULT_COMPLETION_URL
    publish_url: Optional[str] = None
    share_domain: str = DEFAULT_SHARE_DOMAIN
    publish_min_duration: float = DEFAULT_PUBLISH_MIN_DURATION_MS / 1000.0
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    read_timeout: float = DEFAULT_READ_TIMEOUT

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "AppSettings":
        env = os.environ if env is None else env
        publish_url = (env.get("APPCODER_PUBLISH_URL") or "").strip() or None
        return cls(
            completion_url=(env.get("APPCODER_COMPLETION_URL") or "").strip() or DEFAULT_COMPLETION_URL,
            publish_url=publish_url,
            share_domain=(env.get("APPCODER_SHARE_DOMAIN") or "").strip() or DEFAULT_SHARE_DOMAIN,
            publish_min_duration=_float_env(
                env, "APPCODER_PUBLISH_MIN_DURATION_MS", DEFAULT_PUBLISH_MIN_DURATION_MS
            )
            / 1000.0,
            connect_timeout=_float_env(env, "APPCODER_CONNECT_TIMEOUT", DEFAULT_CONNECT_TIMEOUT),
            read_timeout=_float_env(env, "APPCODER_READ_TIMEOUT", DEFAULT_READ_TIMEOUT),
        )
