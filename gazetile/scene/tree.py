"""
In-memory scene tree.

A minimal element tree for hosts without a widget toolkit (and for
tests): nodes carry absolute rectangles, an optional tile tag, and
children painted in list order (later children on top).
"""

from dataclasses import dataclass, field
from typing import Iterator, List, Optional

from gazetile.scene.hit_test import Rect


@dataclass(eq=False)
class SceneNode:
    """One element of the scene."""

    name: str
    rect: Rect
    tile: Optional[str] = None
    visible: bool = True
    children: List["SceneNode"] = field(default_factory=list)
    parent: Optional["SceneNode"] = field(default=None, repr=False)

    def add(self, child: "SceneNode") -> "SceneNode":
        """Attach a child on top of existing children and return it."""
        child.parent = self
        self.children.append(child)
        return child

    def walk(self) -> Iterator["SceneNode"]:
        """Depth-first iteration, self first."""
        yield self
        for child in self.children:
            yield from child.walk()


class NodeScene:
    """``SceneQuery`` over a ``SceneNode`` tree."""

    def __init__(self, root: SceneNode):
        self._root = root

    @property
    def root(self) -> SceneNode:
        return self._root

    def element_at(self, x: float, y: float) -> Optional[SceneNode]:
        return self._topmost(self._root, x, y)

    def _topmost(self, node: SceneNode, x: float, y: float) -> Optional[SceneNode]:
        if not node.visible or not node.rect.contains(x, y):
            return None
        for child in reversed(node.children):
            hit = self._topmost(child, x, y)
            if hit is not None:
                return hit
        return node

    def bounding_rect(self, element: SceneNode) -> Rect:
        return element.rect

    def tile_tag(self, element: SceneNode) -> Optional[str]:
        return element.tile

    def parent(self, element: SceneNode) -> Optional[SceneNode]:
        return element.parent

    def find(self, name: str) -> Optional[SceneNode]:
        for node in self._root.walk():
            if node.name == name:
                return node
        return None
