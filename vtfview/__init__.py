"""Utilities for inspecting VTF (Valve Texture Format) files."""

from .cache import DecodeFailure, SliceDecodeCache
from .texture import TextureLoadError, VTFTexture

__all__ = ["DecodeFailure", "SliceDecodeCache", "TextureLoadError", "VTFTexture"]
