"""Framebuffer header model for the ``framebuffer:`` service.

Header layout (little-endian uint32 fields)::

    version 1:  version bpp       size width height r_off r_len b_off b_len g_off g_len a_off a_len
    version 2:  version bpp cspace size width height r_off r_len b_off b_len g_off g_len a_off a_len
    legacy:     16      size width height            (RGB565, first field is the bpp)
"""

from __future__ import annotations

import struct
from dataclasses import asdict, dataclass

LEGACY_VERSION = 16
V1_FIELD_COUNT = 13
V2_FIELD_COUNT = 14
LEGACY_FIELD_COUNT = 4


@dataclass
class FramebufferHeader:
    version: int
    bpp: int
    size: int
    width: int
    height: int
    red_offset: int = 0
    red_length: int = 0
    blue_offset: int = 0
    blue_length: int = 0
    green_offset: int = 0
    green_length: int = 0
    alpha_offset: int = 0
    alpha_length: int = 0
    color_space: int = 0

    @staticmethod
    def field_count(version: int) -> int | None:
        """Number of uint32 fields (including ``version``) for a header version."""
        return {
            1: V1_FIELD_COUNT,
            2: V2_FIELD_COUNT,
            LEGACY_VERSION: LEGACY_FIELD_COUNT,
        }.get(version)

    @classmethod
    def from_bytes(cls, data: bytes) -> FramebufferHeader:
        """Decode a complete header, version field included.

        Raises:
            ValueError: On an unknown version or a wrong data size.
        """
        if len(data) < 4:
            raise ValueError(f"Framebuffer header too short: {len(data)} bytes")
        (version,) = struct.unpack_from("<I", data)
        count = cls.field_count(version)
        if count is None:
            raise ValueError(f"Unsupported framebuffer version {version}")
        if len(data) != count * 4:
            raise ValueError(
                f"Framebuffer v{version} header must be {count * 4} bytes, got {len(data)}"
            )
        fields = struct.unpack(f"<{count}I", data)

        if version == LEGACY_VERSION:
            _, size, width, height = fields
            return cls(
                version=version, bpp=16, size=size, width=width, height=height,
                red_offset=11, red_length=5,
                green_offset=5, green_length=6,
                blue_offset=0, blue_length=5,
            )

        if version == 2:
            _, bpp, color_space, *rest = fields
        else:
            _, bpp, *rest = fields
            color_space = 0
        (size, width, height, r_off, r_len, b_off, b_len,
         g_off, g_len, a_off, a_len) = rest
        return cls(
            version=version, bpp=bpp, size=size, width=width, height=height,
            red_offset=r_off, red_length=r_len,
            blue_offset=b_off, blue_length=b_len,
            green_offset=g_off, green_length=g_len,
            alpha_offset=a_off, alpha_length=a_len,
            color_space=color_space,
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Framebuffer:
    """A captured frame: the header plus raw pixel bytes (not converted)."""

    header: FramebufferHeader
    data: bytes

    def __repr__(self) -> str:
        return (
            f"Framebuffer({self.header.width}x{self.header.height}, "
            f"bpp={self.header.bpp}, data_len={len(self.data)})"
        )
