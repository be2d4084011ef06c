import numpy as np
import pytest

from rendering.atlas import pack
from rendering.volume import Volume


@pytest.fixture
def random_volume():
    rng = np.random.default_rng(7)
    return Volume(rng.integers(0, 256, size=(5, 6, 4), dtype=np.uint8))


@pytest.fixture
def point_volume():
    """4x4x4 zeros with a single 255 voxel at (2, 2, 2)."""
    data = np.zeros((4, 4, 4), dtype=np.uint8)
    data[2, 2, 2] = 255
    return Volume(data)


@pytest.fixture
def point_atlas(point_volume):
    return pack(point_volume)


@pytest.fixture
def qt_core_app():
    from PySide6.QtCore import QCoreApplication

    return QCoreApplication.instance() or QCoreApplication([])
