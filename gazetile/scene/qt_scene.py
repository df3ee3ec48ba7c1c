"""
Hit-testing against a live PyQt6 widget tree.

Viewport coordinates are the local coordinates of the root widget. A
widget is a tile when it carries a ``"tile"`` dynamic property.
"""

import math
from typing import Optional

from PyQt6.QtCore import QPoint
from PyQt6.QtWidgets import QWidget

from gazetile.scene.hit_test import Rect

TILE_PROPERTY = "tile"


def set_tile_tag(widget: QWidget, tile_id: Optional[str]):
    """Tag (or untag, with None) a widget as a tile."""
    widget.setProperty(TILE_PROPERTY, tile_id)


class QtWidgetScene:
    """``SceneQuery`` over the children of a root ``QWidget``."""

    def __init__(self, root: QWidget):
        self._root = root

    @property
    def root(self) -> QWidget:
        return self._root

    def element_at(self, x: float, y: float) -> Optional[QWidget]:
        if not (math.isfinite(x) and math.isfinite(y)):
            return None
        # Floor so fractional negatives stay outside the root
        point = QPoint(math.floor(x), math.floor(y))
        if not self._root.isVisible() or not self._root.rect().contains(point):
            return None
        # childAt returns the deepest visible child, None over bare root area
        child = self._root.childAt(point)
        return child if child is not None else self._root

    def bounding_rect(self, element: QWidget) -> Rect:
        if element is self._root:
            origin = QPoint(0, 0)
        else:
            origin = element.mapTo(self._root, QPoint(0, 0))
        return Rect(
            left=float(origin.x()),
            top=float(origin.y()),
            width=float(element.width()),
            height=float(element.height()),
        )

    def tile_tag(self, element: QWidget) -> Optional[str]:
        value = element.property(TILE_PROPERTY)
        if value is None:
            return None
        return str(value)

    def parent(self, element: QWidget) -> Optional[QWidget]:
        # Never walk above the root
        if element is self._root:
            return None
        return element.parentWidget()
