"""Masking of dashboard secrets in debug output.

A session logs its :class:`~pybreakerbot.config.BreakerBotConfig` when it
starts. That config holds the command secrets and broker credentials, which
must never reach a log file.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from typing import Any

_MASK = "<redacted>"

_SECRET_KEYS: frozenset[str] = frozenset(
    {
        "standard_secret",
        "privileged_secret",
        "access_code",
        "password",
        "secret",
        "pin",
        "token",
    }
)


def redact_for_log(value: Any) -> Any:
    """Return *value* with secret-bearing keys masked.

    Config dataclasses are flattened with :func:`dataclasses.asdict` first;
    nested mappings (``timings``) are walked. Unset secrets stay ``None`` so
    a missing secret is still visible when debugging.
    """
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        value = dataclasses.asdict(value)
    if not isinstance(value, Mapping):
        return value
    return {
        str(key): _MASK if str(key).lower() in _SECRET_KEYS and item is not None else redact_for_log(item)
        for key, item in value.items()
    }
