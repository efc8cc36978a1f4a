import os
import sys
from pathlib import Path

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from srctools.vtf import VTF, ImageFormats, VTFFlags

from vtfview.texture import VTFTexture

PIXEL = bytes([10, 20, 30, 255])


def make_vtf(width=16, height=16, fmt=ImageFormats.RGBA8888, **kwargs) -> VTF:
    """Blank VTF without a thumbnail.

    Every frame of a flat texture is filled with :data:`PIXEL`; cubemaps stay black.
    """
    vtf = VTF(width, height, fmt=fmt, thumb_fmt=ImageFormats.NONE, **kwargs)
    if VTFFlags.ENVMAP in vtf.flags:
        return vtf
    for frame in range(vtf.frame_count):
        vtf.get(frame=frame).copy_from(PIXEL * (width * height))
    return vtf


@pytest.fixture
def sample_path(tmp_path) -> Path:
    path = tmp_path / "sample.vtf"
    VTFTexture(make_vtf(frames=2)).save(path)
    return path
