"""
Shared test fixtures.
"""

import os

# Qt must not need a display when tests run headless
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest

from gazetile.storage.calibration_store import CalibrationStore
from gazetile.storage.settings_store import MemoryStore
from gazetile.tracking.affine import AffineTransform


@pytest.fixture
def memory_store():
    """Empty in-memory key-value store."""
    return MemoryStore()


@pytest.fixture
def calibration_store(memory_store):
    """Calibration store backed by memory."""
    return CalibrationStore(memory_store)


@pytest.fixture
def skewed_transform():
    """A non-trivial affine transform (scale, shear, offset)."""
    return AffineTransform(a11=1.2, a12=0.05, b1=-30.0, a21=-0.04, a22=0.9, b2=25.0)


@pytest.fixture(scope="session")
def qapp():
    """Single QApplication for Qt widget tests."""
    QtWidgets = pytest.importorskip("PyQt6.QtWidgets")
    app = QtWidgets.QApplication.instance()
    if app is None:
        app = QtWidgets.QApplication([])
    yield app
