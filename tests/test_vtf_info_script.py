import subprocess
import sys
from pathlib import Path

from srctools.vtf import Resource, ResourceID

from conftest import make_vtf
from vtfview.texture import VTFTexture

SCRIPT = Path(__file__).resolve().parents[1] / "vtf_info.py"


def _run(*args):
    return subprocess.run(
        [sys.executable, str(SCRIPT), *map(str, args)],
        capture_output=True,
        text=True,
    )


def test_vtf_info(tmp_path):
    vtf = make_vtf(32, 16)
    vtf.resources[ResourceID.CRC] = Resource(0, b"\xde\xad\xbe\xef")
    texture = VTFTexture(vtf)
    texture.set_flag(0x1, True)
    path = tmp_path / "info.vtf"
    texture.save(path)

    result = _run(path, "--resources", "--flags")
    assert result.returncode == 0, result.stdout + result.stderr
    assert "Width: 32" in result.stdout
    assert "Height: 16" in result.stdout
    assert "Image format: RGBA8888" in result.stdout
    assert "CRC [0x435243]: 4 bytes (0.00 KiB)" in result.stdout
    assert "Point Sample" in result.stdout


def test_vtf_info_rejects_bad_file(tmp_path):
    bad = tmp_path / "bad.vtf"
    bad.write_bytes(b"nope")
    result = _run(bad)
    assert result.returncode == 1
    assert "Failed to read" in result.stdout
