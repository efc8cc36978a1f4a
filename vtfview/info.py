"""Text formatting of texture metadata shared by the GUI and ``vtf_info.py``."""
from __future__ import annotations

from typing import Dict, List, Tuple

from .texture import VTFTexture, image_format_info

FILE_FIELDS = ("Size", "Version")

INFO_FIELDS = (
    "Width", "Height", "Depth",
    "Frames", "Faces", "Mips",
    "Image format",
    "Reflectivity",
)


def format_file_size(size: int) -> str:
    return f"{size / (1024 * 1024):.2f} MiB ({size / 1024:.2f} KiB)"


def format_data_size(size: int) -> str:
    return f"{size:d} bytes ({size / 1024:.2f} KiB)"


def describe_texture(texture: VTFTexture) -> Dict[str, str]:
    """Map every field in :data:`FILE_FIELDS` and :data:`INFO_FIELDS` to its text."""
    major, minor = texture.version
    x, y, z = texture.reflectivity
    return {
        "Size": format_file_size(texture.size),
        "Version": f"{major}.{minor}",
        "Width": str(texture.width),
        "Height": str(texture.height),
        "Depth": str(texture.depth),
        "Frames": str(texture.frame_count),
        "Faces": str(texture.face_count),
        "Mips": str(texture.mipmap_count),
        "Image format": image_format_info(texture.pixel_format).name,
        "Reflectivity": f"{x:.3f} {y:.3f} {z:.3f}",
    }


def resource_rows(texture: VTFTexture) -> List[Tuple[str, str, str]]:
    """Rows of (name, type, data size) for the resource table."""
    return [
        (res.name, f"0x{res.type_id:X}", format_data_size(res.size))
        for res in texture.resources()
    ]
