"""
Grid of selectable colour tiles.

Each tile is tagged for hit-testing; the targeted tile is drawn with a
gradient.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from PyQt6.QtGui import QColor
from PyQt6.QtWidgets import QFrame, QGridLayout, QLabel, QVBoxLayout, QWidget
from PyQt6.QtCore import Qt

from gazetile.scene.qt_scene import set_tile_tag


@dataclass(frozen=True)
class TileSpec:
    """Tile identity and appearance."""

    tile_id: str
    color: str  # "#RRGGBB"
    label: str = ""


DEFAULT_TILES: Tuple[TileSpec, ...] = (
    TileSpec("t1", "#FCA5A5", "Red"),
    TileSpec("t2", "#FDE68A", "Yellow"),
    TileSpec("t3", "#86EFAC", "Green"),
    TileSpec("t4", "#93C5FD", "Blue"),
    TileSpec("t5", "#C4B5FD", "Indigo"),
    TileSpec("t6", "#F9A8D4", "Pink"),
    TileSpec("t7", "#FDBA74", "Orange"),
    TileSpec("t8", "#A7F3D0", "Teal"),
    TileSpec("t9", "#BFDBFE", "Sky"),
    TileSpec("t10", "#DDD6FE", "Violet"),
    TileSpec("t11", "#FBCFE8", "Rose"),
    TileSpec("t12", "#BBF7D0", "Lime"),
)


def lighten(color: str, amount: float) -> str:
    """Shift each RGB channel by ``amount`` (in [-1, 1]) of full scale."""
    base = QColor(color)
    shift = round(255 * amount)
    channels = [
        min(255, max(0, value + shift))
        for value in (base.red(), base.green(), base.blue())
    ]
    return QColor(*channels).name()


class TileGridWidget(QWidget):
    """Tiles laid out on a fixed-column grid."""

    def __init__(self, tiles: Tuple[TileSpec, ...] = DEFAULT_TILES, columns: int = 4, parent=None):
        super().__init__(parent)

        self._tiles: Dict[str, QFrame] = {}
        self._specs: Dict[str, TileSpec] = {}
        self._active_id: Optional[str] = None

        layout = QGridLayout(self)
        layout.setSpacing(12)
        layout.setContentsMargins(16, 16, 16, 16)

        for index, spec in enumerate(tiles):
            tile = QFrame(self)
            tile.setObjectName(f"tile-{spec.tile_id}")
            set_tile_tag(tile, spec.tile_id)

            label = QLabel(spec.label or spec.tile_id, tile)
            label.setAlignment(Qt.AlignmentFlag.AlignCenter)
            inner = QVBoxLayout(tile)
            inner.addWidget(label)

            layout.addWidget(tile, index // columns, index % columns)
            self._tiles[spec.tile_id] = tile
            self._specs[spec.tile_id] = spec
            self._apply_style(spec.tile_id)

    def _apply_style(self, tile_id: str):
        spec = self._specs[tile_id]
        if tile_id == self._active_id:
            background = (
                "qlineargradient(x1:0, y1:0, x2:1, y2:1, "
                f"stop:0 {spec.color}, stop:1 {lighten(spec.color, 0.15)})"
            )
            border = "3px solid #1F2937"
        else:
            background = spec.color
            border = "3px solid transparent"
        self._tiles[tile_id].setStyleSheet(
            f"QFrame#tile-{tile_id} {{ background: {background}; border: {border}; border-radius: 12px; }}"
        )

    def set_active(self, tile_id: Optional[str]):
        """Highlight one tile (None clears the highlight)."""
        if tile_id == self._active_id:
            return
        previous, self._active_id = self._active_id, tile_id
        for changed in (previous, tile_id):
            if changed in self._tiles:
                self._apply_style(changed)

    @property
    def active_id(self) -> Optional[str]:
        return self._active_id

    def tile(self, tile_id: str) -> QFrame:
        return self._tiles[tile_id]

    @property
    def tile_ids(self) -> Tuple[str, ...]:
        return tuple(self._tiles)
