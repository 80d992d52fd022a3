import os

import pytest

# Qt-backed tests never open real windows.
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
os.environ.setdefault("MORPHFIELD_FORCE_BACKEND", "raster")

from morphfield.config import load_config


SMALL_GRID = {"geometry": {"segmentsX": 8, "segmentsY": 8}}


@pytest.fixture
def small_config():
    return load_config("converge", SMALL_GRID)
