# src/vent/core/metrics.py
from __future__ import annotations

import logging
import threading
import time
from collections import deque
from statistics import mean
from typing import Any, Deque, Dict, Iterable, Optional, Tuple

# sorted tuple of (label, value)
LabelKey = Tuple[Tuple[str, str], ...]
MetricKey = Tuple[str, LabelKey]


def _labels_key(labels: Dict[str, Any] | None) -> LabelKey:
    if not labels:
        return tuple()
    return tuple(sorted((str(k), str(v)) for k, v in labels.items()))


def _pct(sorted_vals: Iterable[float], q: float) -> float:
    vals = list(sorted_vals)
    if not vals:
        return 0.0
    idx = max(0, min(len(vals) - 1, int(round((len(vals) - 1) * q))))
    return vals[idx]


class Counter:
    def __init__(self) -> None:
        self._value = 0.0
        self._lock = threading.Lock()

    def inc(self, n: float = 1.0) -> None:
        with self._lock:
            self._value += n

    def value(self) -> float:
        with self._lock:
            return self._value


class Gauge:
    def __init__(self) -> None:
        self._value = 0.0
        self._lock = threading.Lock()

    def set(self, v: float) -> None:
        with self._lock:
            self._value = float(v)

    def value(self) -> float:
        with self._lock:
            return self._value


class Histogram:
    def __init__(self, maxlen: int = 2048) -> None:
        self._values: Deque[float] = deque(maxlen=maxlen)
        self._lock = threading.Lock()

    def observe(self, v: float) -> None:
        with self._lock:
            self._values.append(float(v))

    def summary(self) -> Dict[str, float]:
        with self._lock:
            vals = sorted(self._values)
        if not vals:
            return {"count": 0.0, "min": 0.0, "max": 0.0, "mean": 0.0, "p50": 0.0, "p99": 0.0}
        return {
            "count": float(len(vals)),
            "min": vals[0],
            "max": vals[-1],
            "mean": mean(vals),
            "p50": _pct(vals, 0.50),
            "p99": _pct(vals, 0.99),
        }


class _Registry:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._counters: Dict[MetricKey, Counter] = {}
        self._gauges: Dict[MetricKey, Gauge] = {}
        self._hists: Dict[MetricKey, Histogram] = {}

    def _get(self, table: Dict[MetricKey, Any], factory, name: str, labels: Dict[str, Any] | None):
        key = (name, _labels_key(labels))
        with self._lock:
            m = table.get(key)
            if m is None:
                m = table[key] = factory()
            return m

    def counter(self, name: str, labels: Dict[str, Any] | None) -> Counter:
        return self._get(self._counters, Counter, name, labels)

    def gauge(self, name: str, labels: Dict[str, Any] | None) -> Gauge:
        return self._get(self._gauges, Gauge, name, labels)

    def hist(self, name: str, labels: Dict[str, Any] | None) -> Histogram:
        return self._get(self._hists, Histogram, name, labels)

    def items(self):
        with self._lock:
            return list(self._counters.items()), list(self._gauges.items()), list(self._hists.items())

    def clear(self) -> None:
        with self._lock:
            self._counters.clear()
            self._gauges.clear()
            self._hists.clear()


_REG = _Registry()


def inc(name: str, n: float = 1.0, **labels: Any) -> None:
    _REG.counter(name, labels).inc(n)


def gauge_set(name: str, v: float, **labels: Any) -> None:
    _REG.gauge(name, labels).set(v)


def observe_hist(name: str, v: float, **labels: Any) -> None:
    _REG.hist(name, labels).observe(v)


def counter_value(name: str, **labels: Any) -> float:
    """Current value of a counter; 0.0 if it was never incremented."""
    m = _REG._counters.get((name, _labels_key(labels)))
    return 0.0 if m is None else m.value()


def reset() -> None:
    """Forget every metric (tests)."""
    _REG.clear()


class Timer:
    """Context manager recording elapsed milliseconds into a histogram."""

    def __init__(self, hist_name: str, **labels: Any) -> None:
        self.hist_name = hist_name
        self.labels = labels
        self._t0 = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self):
        self._t0 = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.elapsed_ms = (time.perf_counter() - self._t0) * 1000.0
        observe_hist(self.hist_name, self.elapsed_ms, **self.labels)
        return False


def snapshot() -> dict:
    """Plain-dict view of every metric recorded so far."""
    counters, gauges, hists = _REG.items()
    return {
        "counters": [{"name": n, "labels": dict(lk), "value": m.value()} for (n, lk), m in counters],
        "gauges": [{"name": n, "labels": dict(lk), "value": m.value()} for (n, lk), m in gauges],
        "hists": [{"name": n, "labels": dict(lk), **m.summary()} for (n, lk), m in hists],
    }


def emit_snapshot(logger: Optional[logging.Logger] = None, json_mode: bool = False) -> None:
    """Log every metric once, as dicts (json_mode) or one text line each."""
    log = logger or logging.getLogger("vent.metrics")
    snap = snapshot()
    if json_mode:
        for kind in ("counters", "gauges", "hists"):
            for entry in snap[kind]:
                log.info({"type": kind[:-1], **entry})
        return
    for c in snap["counters"]:
        log.info(f"[ctr] {c['name']} {c['labels']} value={c['value']:.0f}")
    for g in snap["gauges"]:
        log.info(f"[gauge] {g['name']} {g['labels']} value={g['value']:.3f}")
    for h in snap["hists"]:
        log.info(
            f"[hist] {h['name']} {h['labels']} "
            f"n={int(h['count'])} min={h['min']:.3f} p50={h['p50']:.3f} "
            f"p99={h['p99']:.3f} max={h['max']:.3f} mean={h['mean']:.3f}"
        )
