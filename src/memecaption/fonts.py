"""Font store: TrueType/OpenType fonts addressed by file stem.

A Font keeps the raw file bytes and hands out Pillow FreeType faces per
size. Faces are built with the BASIC layout engine so glyph advances
(and therefore line widths) don't depend on whether libraqm is
installed.
"""

import io
from functools import lru_cache
from pathlib import Path

from PIL import ImageFont

from .errors import ResourceKind
from .store import ResourceStore


FONT_FILE_EXTENSIONS = frozenset({"ttf", "otf"})

# Size used to validate a font file when it's loaded.
_PROBE_SIZE = 12


def _open_face(data: bytes, size: int) -> ImageFont.FreeTypeFont:
    return ImageFont.truetype(
        io.BytesIO(data), size=size, layout_engine=ImageFont.Layout.BASIC,
    )


class Font:
    """Immutable font resource."""

    def __init__(self, font_id: str, path: Path, data: bytes):
        self._id = font_id
        self._path = path
        self._data = data
        self.face = lru_cache(maxsize=64)(self._face)

    @property
    def id(self) -> str:
        return self._id

    @property
    def path(self) -> Path:
        return self._path

    @property
    def data(self) -> bytes:
        return self._data

    def _face(self, size: int) -> ImageFont.FreeTypeFont:
        return _open_face(self._data, size)

    def __repr__(self):
        return f"Font({self._id!r})"


def decode_font(resource_id: str, path: Path) -> Font:
    """Read a font file and check FreeType can parse it.

    Raises:
        OSError: Unreadable file or not a font FreeType understands.
    """
    data = path.read_bytes()
    _open_face(data, _PROBE_SIZE)
    return Font(resource_id, path, data)


class FontStore(ResourceStore):
    kind = ResourceKind.FONT
    extensions = FONT_FILE_EXTENSIONS

    def _decode(self, resource_id: str, path: Path) -> Font:
        return decode_font(resource_id, path)
