# src/vent/wire_config.py
from __future__ import annotations

import importlib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from vent.core import log
from vent.core.contracts import TIERS, DispatcherConfig
from vent.core.dispatcher import Dispatcher

l = log.get("wire_config")

_TYPED_TIERS = ("before", "normal", "after")


@dataclass
class Registration:
    tier: str
    event_type: Optional[type]
    processor: Any


def _imp(ref: str) -> Any:
    """Resolve ``package.module:attr`` (dotted attr allowed)."""
    if not isinstance(ref, str) or ":" not in ref:
        raise ValueError(f"expected 'module:attr' reference, got {ref!r}")
    module, _, attr = ref.partition(":")
    obj: Any = importlib.import_module(module)
    for part in attr.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError as e:
            raise ValueError(f"{module} has no attribute {attr!r}") from e
    return obj


def _mk_cfg(d: Dict[str, Any]) -> DispatcherConfig:
    d = dict(d or {})
    unknown = set(d) - {"name", "base_type", "isolate_errors", "threadsafe"}
    if unknown:
        raise ValueError(f"unknown dispatcher options: {sorted(unknown)}")
    if d.get("base_type"):
        d["base_type"] = _imp(d["base_type"])
    for flag in ("isolate_errors", "threadsafe"):
        if flag in d:
            d[flag] = bool(d[flag])
    return DispatcherConfig(**d)


def _register(dispatcher: Dispatcher, entry: Dict[str, Any]) -> Registration:
    if not isinstance(entry, dict):
        raise ValueError(f"processor entry must be a mapping, got {entry!r}")
    tier = entry.get("tier", "normal")
    if tier not in TIERS:
        raise ValueError(f"unknown tier {tier!r}; expected one of {TIERS}")
    if "processor" not in entry:
        raise ValueError(f"processor entry without 'processor': {entry!r}")
    processor = _imp(entry["processor"])

    if tier in _TYPED_TIERS:
        if "event" not in entry:
            raise ValueError(f"tier {tier!r} needs an 'event' reference")
        event_type = _imp(entry["event"])
        register = dispatcher.subscribe if tier == "normal" else getattr(dispatcher, tier)
        register(event_type, processor)
        return Registration(tier, event_type, processor)

    getattr(dispatcher, tier)(processor)
    return Registration(tier, None, processor)


def build_from_dict(data: Dict[str, Any]) -> Tuple[Dispatcher, List[Registration]]:
    """Build a dispatcher and its registrations from a parsed config mapping."""
    if not isinstance(data, dict):
        raise ValueError("config root must be a mapping")
    dispatcher = Dispatcher(_mk_cfg(data.get("dispatcher") or {}))
    regs = [_register(dispatcher, entry) for entry in (data.get("processors") or [])]
    l.info("wired dispatcher=%s registrations=%d", dispatcher.name, len(regs))
    return dispatcher, regs


def build_from_yaml(yaml_path: str | Path) -> Tuple[Dispatcher, List[Registration]]:
    """Read a dispatcher YAML file and wire its processors."""
    data = yaml.safe_load(Path(yaml_path).read_text(encoding="utf-8")) or {}
    return build_from_dict(data)
