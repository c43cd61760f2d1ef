"""Services package.

Keep this module lightweight: importing `services` should not pull in the
HTTP stack. The round authority client is exported lazily.
"""

from __future__ import annotations

import importlib

from .event_bus import EventBus, Events, event_bus
from .logger import bind_round, get_logger, setup_logging

__all__ = ["EventBus", "Events", "bind_round", "event_bus", "get_logger", "setup_logging"]


_LAZY_EXPORTS = {
    "RoundAuthorityClient": ("services.round_authority", "RoundAuthorityClient"),
    "AuthorityError": ("services.round_authority", "AuthorityError"),
    "AuthorityHTTPError": ("services.round_authority", "AuthorityHTTPError"),
    "AuthorityUnavailable": ("services.round_authority", "AuthorityUnavailable"),
    "AuthorityResponseError": ("services.round_authority", "AuthorityResponseError"),
}


def __getattr__(name: str):
    if name in _LAZY_EXPORTS:
        module_name, attr = _LAZY_EXPORTS[name]
        module = importlib.import_module(module_name)
        value = getattr(module, attr)
        globals()[name] = value
        if name not in __all__:
            __all__.append(name)
        return value
    raise AttributeError(f"module 'services' has no attribute {name!r}")
