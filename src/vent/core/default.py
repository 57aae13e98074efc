# src/vent/core/default.py
from __future__ import annotations

import threading
from typing import Optional

from vent.core.contracts import DispatcherConfig
from vent.core.dispatcher import Dispatcher

_DEFAULT: Optional[Dispatcher] = None
_INIT_LOCK = threading.Lock()


def get_default() -> Dispatcher:
    """Process-wide shared dispatcher, built on first use and reused afterwards."""
    global _DEFAULT
    if _DEFAULT is None:
        with _INIT_LOCK:
            if _DEFAULT is None:
                _DEFAULT = Dispatcher(DispatcherConfig(name="default"))
    return _DEFAULT


def reset_default() -> None:
    """Forget the shared dispatcher; the next get_default() builds a fresh one."""
    global _DEFAULT
    with _INIT_LOCK:
        _DEFAULT = None
