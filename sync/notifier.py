from __future__ import annotations

import logging
import threading
from typing import Any, Callable

logger = logging.getLogger(__name__)

ALL = "all"

ChangeCallback = Callable[[Any], None]


class _Subscription:
    __slots__ = ("callback", "active")

    def __init__(self, callback: ChangeCallback):
        self.callback = callback
        self.active = True


class ChangeNotifier:
    """
    In-process observer registry keyed by document section.

    publish(section, value) runs the callbacks for `section`, then the callbacks
    for the wildcard "all" section, each group in registration order. A failing
    callback is logged and does not stop the rest.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._subs: dict[str, list[_Subscription]] = {}

    def subscribe(self, section: str, callback: ChangeCallback) -> Callable[[], None]:
        sub = _Subscription(callback)
        with self._guard:
            self._subs.setdefault(section, []).append(sub)

        def _unsubscribe() -> None:
            sub.active = False
            with self._guard:
                subs = self._subs.get(section)
                if subs and sub in subs:
                    subs.remove(sub)

        return _unsubscribe

    def subscriber_count(self, section: str) -> int:
        with self._guard:
            return len(self._subs.get(section, []))

    def publish(self, section: str, value: Any, *, include_wildcard: bool = True) -> int:
        """Returns how many callbacks ran (including ones that failed)."""
        # Iterate over a snapshot so (un)subscribing from a callback cannot
        # shift the list under us.
        with self._guard:
            targets = list(self._subs.get(section, []))
            if include_wildcard and section != ALL:
                targets.extend(self._subs.get(ALL, []))

        invoked = 0
        for sub in targets:
            if not sub.active:
                continue
            invoked += 1
            try:
                sub.callback(value)
            except Exception:
                logger.exception("NOTIFY: callback for section=%s failed", section)
        return invoked
