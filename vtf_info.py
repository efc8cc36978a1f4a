#!/usr/bin/env python3
"""Print the metadata of a VTF file."""

from __future__ import annotations

import argparse

from vtfview.info import FILE_FIELDS, INFO_FIELDS, describe_texture, resource_rows
from vtfview.texture import TextureLoadError, VTFTexture, describe_flags


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Show information about a VTF file")
    parser.add_argument("vtf", help="Path to the VTF file")
    parser.add_argument("--resources", action="store_true", help="List embedded resources")
    parser.add_argument("--flags", action="store_true", help="List the texture flags that are set")
    args = parser.parse_args(argv)

    try:
        texture = VTFTexture.load(args.vtf)
    except TextureLoadError as exc:
        print(f"Failed to read {args.vtf}: {exc}")
        return 1

    info = describe_texture(texture)
    print("File Metadata")
    for name in FILE_FIELDS:
        print(f"  {name}: {info[name]}")

    print("\nImage Info")
    for name in INFO_FIELDS:
        print(f"  {name}: {info[name]}")

    if args.resources:
        print("\nResources")
        rows = resource_rows(texture)
        if not rows:
            print("  (none)")
        for name, type_text, size_text in rows:
            print(f"  {name} [{type_text}]: {size_text}")

    if args.flags:
        print(f"\nFlags (0x{texture.flags:08X})")
        for name in describe_flags(texture.flags):
            print(f"  {name}")
    return 0


if __name__ == "__main__":  # pragma: no cover - manual invocation
    raise SystemExit(main())
