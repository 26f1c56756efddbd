"""
Surface — the bit of page plumbing the autocomplete needs.

An element tree just deep enough to answer "is this click inside the
search bar?", and a listener registry standing in for document-level
event listeners.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Optional


@dataclass(eq=False)
class Element:
    element_id: str
    parent: Optional[Element] = None

    def contains(self, other: Optional[Element]) -> bool:
        node = other
        while node is not None:
            if node is self:
                return True
            node = node.parent
        return False

    def child(self, element_id: str) -> Element:
        return Element(element_id, parent=self)


@dataclass
class PointerEvent:
    target: Optional[Element]


class Surface:
    def __init__(self):
        self._listeners: dict[str, list[Callable]] = {}

    def add_listener(self, kind: str, callback: Callable):
        self._listeners.setdefault(kind, []).append(callback)

    def remove_listener(self, kind: str, callback: Callable):
        callbacks = self._listeners.get(kind, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def dispatch(self, kind: str, event):
        # Copy: a listener may unregister itself while we iterate
        for callback in list(self._listeners.get(kind, [])):
            callback(event)

    def listener_count(self, kind: str) -> int:
        return len(self._listeners.get(kind, []))
