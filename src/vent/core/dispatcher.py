# src/vent/core/dispatcher.py
"""Type-keyed event dispatcher.

Events are routed by ``type(event)``, exact match only. Each event passes
through five tiers in order: before-any, before[T], normal[T], after[T],
after-any. Only a normal-tier processor can consume an event, which skips the
remaining normal-tier processors for that event; the after tiers still run.

``post()`` queues an event until ``process()`` drains the queue;
``post_immediate()`` delivers on the spot. Posts made from inside a drain are
held back and queued once the drain finishes, so they surface on the next
``process()`` call.
"""
from __future__ import annotations

import contextlib
import threading
from collections import defaultdict
from typing import Any, Callable, DefaultDict, Dict, List, Optional, Type

from vent.core import log
from vent.core.contracts import E, AnyProcessor, DispatcherConfig, Processor, as_callable, describe
from vent.core.metrics import Timer, gauge_set, inc


class Dispatcher:
    def __init__(self, cfg: Optional[DispatcherConfig] = None, **overrides: Any):
        if cfg is None:
            cfg = DispatcherConfig(**overrides)
        elif overrides:
            raise TypeError("pass either a DispatcherConfig or keyword overrides, not both")
        self.cfg = cfg
        self.name = cfg.name
        self.base_type = cfg.base_type
        self.l = log.get(f"dispatcher.{cfg.name}")
        self._lock = threading.RLock() if cfg.threadsafe else contextlib.nullcontext()

        # registration table
        self._before: DefaultDict[type, List[AnyProcessor]] = defaultdict(list)
        self._normal: DefaultDict[type, List[AnyProcessor]] = defaultdict(list)
        self._after: DefaultDict[type, List[AnyProcessor]] = defaultdict(list)
        self._before_any: List[AnyProcessor] = []
        self._after_any: List[AnyProcessor] = []

        # pending queue; dict order is first-post order per type
        self._pending: Dict[type, List[Any]] = {}
        self._pending_count = 0
        self._deferred: List[Any] = []
        self._processing = False

    # ---------------- registration ----------------

    def _check_type(self, event_type: Any) -> type:
        if not isinstance(event_type, type):
            raise TypeError(f"event type must be a class, got {event_type!r}")
        if self.base_type is not None and not issubclass(event_type, self.base_type):
            raise TypeError(f"{event_type.__name__} does not derive from {self.base_type.__name__}")
        return event_type

    def _register(self, table: Any, processor: AnyProcessor, tier: str, event_type: Optional[type]) -> None:
        """Append to *table* (a list), or to table[event_type] for typed tiers."""
        as_callable(processor)  # reject non-processors up front
        with self._lock:
            seq = table if event_type is None else table[event_type]
            seq.append(processor)
        self.l.debug(
            "registered tier=%s type=%s processor=%s",
            tier, event_type.__name__ if event_type else "*", describe(processor),
        )

    def subscribe(self, event_type: Type[E], processor: Processor[E]) -> None:
        """Append *processor* to the normal tier of *event_type*.

        No uniqueness check: subscribing twice means two calls per event.
        """
        t = self._check_type(event_type)
        self._register(self._normal, processor, "normal", t)

    def before(self, event_type: Type[E], processor: Processor[E]) -> None:
        t = self._check_type(event_type)
        self._register(self._before, processor, "before", t)

    def after(self, event_type: Type[E], processor: Processor[E]) -> None:
        t = self._check_type(event_type)
        self._register(self._after, processor, "after", t)

    def before_any(self, processor: AnyProcessor) -> None:
        self._register(self._before_any, processor, "before_any", None)

    def after_any(self, processor: AnyProcessor) -> None:
        self._register(self._after_any, processor, "after_any", None)

    @staticmethod
    def _drop(seq: List[AnyProcessor], processor: AnyProcessor) -> int:
        kept = [p for p in seq if p != processor]
        removed = len(seq) - len(kept)
        seq[:] = kept
        return removed

    def unsubscribe(self, processor: AnyProcessor) -> None:
        """Remove *processor* from the normal tier of every type.

        before/after/any registrations are left in place; use remove() to
        drop those too.
        """
        with self._lock:
            removed = sum(self._drop(seq, processor) for seq in self._normal.values())
        self.l.debug("unsubscribed processor=%s removed=%d", describe(processor), removed)

    def remove(self, processor: AnyProcessor) -> None:
        """Remove *processor* from all five tiers."""
        with self._lock:
            removed = 0
            for table in (self._before, self._normal, self._after):
                removed += sum(self._drop(seq, processor) for seq in table.values())
            removed += self._drop(self._before_any, processor)
            removed += self._drop(self._after_any, processor)
        self.l.debug("removed processor=%s removed=%d", describe(processor), removed)

    def clear(self) -> None:
        """Drop every registration. Pending events stay queued."""
        with self._lock:
            for table in (self._before, self._normal, self._after):
                for seq in table.values():
                    seq.clear()
            self._before_any.clear()
            self._after_any.clear()

    def subscriber_count(self, event_type: type) -> int:
        with self._lock:
            return len(self._normal[event_type])

    def has_subscribers(self, event_type: type) -> bool:
        with self._lock:
            return bool(self._normal[event_type])

    @property
    def pending_count(self) -> int:
        return self._pending_count

    @property
    def processing(self) -> bool:
        return self._processing

    # ---------------- delivery ----------------

    def _invoke(self, processor: AnyProcessor, event: Any, type_name: str) -> bool:
        # resolved per call: tables keep the registered object so removal can match it by ==
        fn: Callable[[Any], Any] = as_callable(processor)
        if not self.cfg.isolate_errors:
            return bool(fn(event))
        try:
            return bool(fn(event))
        except Exception:
            inc("vent_processor_errors_total", 1, type=type_name)
            self.l.error("processor %s failed on %s", describe(processor), type_name, exc_info=True)
            return False

    def _deliver(self, event_type: type, event: Any) -> None:
        name = event_type.__name__
        # snapshot each tier: registrations made by a processor apply from the next event
        for p in list(self._before_any):
            self._invoke(p, event, name)
        for p in list(self._before[event_type]):
            self._invoke(p, event, name)
        for p in list(self._normal[event_type]):
            if self._invoke(p, event, name):
                inc("vent_consumed_total", 1, type=name)
                break
        for p in list(self._after[event_type]):
            self._invoke(p, event, name)
        for p in list(self._after_any):
            self._invoke(p, event, name)
        inc("vent_deliver_total", 1, type=name)

    def _check_event(self, event: Any) -> type:
        if self.base_type is not None and not isinstance(event, self.base_type):
            raise TypeError(f"{type(event).__name__} is not a {self.base_type.__name__}")
        return type(event)

    def post_immediate(self, event: Any) -> None:
        """Run the pipeline for *event* now. Never touches the queue."""
        event_type = self._check_event(event)
        inc("vent_post_total", 1, type=event_type.__name__, mode="immediate")
        with self._lock:
            self._deliver(event_type, event)

    def post(self, event: Any) -> None:
        """Queue *event* for the next process() call."""
        event_type = self._check_event(event)
        with self._lock:
            if self._processing:
                self._deferred.append(event)
                return
            self._pending.setdefault(event_type, []).append(event)
            self._pending_count += 1
        inc("vent_post_total", 1, type=event_type.__name__, mode="queued")
        gauge_set("vent_pending", self._pending_count, dispatcher=self.name)

    def process(self) -> None:
        """Drain the queue: every pending event, grouped by type in first-post order.

        A processor exception aborts the drain and propagates. The failing
        event is dropped, unreached events stay queued for the next call.
        """
        with self._lock:
            if self._processing:
                self.l.warning("process() called during a drain; ignored")
                return
            if self._pending_count == 0:
                return

            self._processing = True
            delivered = 0
            try:
                with Timer("vent_drain_ms", dispatcher=self.name):
                    for event_type, queue in self._pending.items():
                        done = 0
                        try:
                            for event in queue:
                                self._deliver(event_type, event)
                                done += 1
                        finally:
                            delivered += done
                            # also drops the event that raised, if any
                            del queue[:done + 1]
            finally:
                self._processing = False
                self._pending_count = sum(len(q) for q in self._pending.values())
                deferred, self._deferred = self._deferred, []
                for event in deferred:
                    self.post(event)
                gauge_set("vent_pending", self._pending_count, dispatcher=self.name)
                self.l.debug(
                    "drained delivered=%d carried=%d pending=%d",
                    delivered, len(deferred), self._pending_count,
                )
