"""Template store: base images addressed by file stem.

Templates are decoded once into write-protected RGBA numpy arrays and
shared by every request. Requests copy the pixels (Template.copy_frames)
before drawing, so the cached buffers are never mutated.

Animated GIFs keep every frame together with its duration and the
animation's loop count, so captioned output can be re-encoded as the
same animation.
"""

from dataclasses import dataclass
from pathlib import Path

import numpy as np
from PIL import Image, ImageSequence

from .errors import ResourceKind
from .store import ResourceStore


IMAGE_FORMAT_EXTENSIONS = {
    "gif": "GIF",
    "jpeg": "JPEG",
    "jpg": "JPEG",
    "png": "PNG",
}

DEFAULT_IMAGE_FORMAT = "PNG"


@dataclass(frozen=True, eq=False)
class Template:
    id: str
    width: int
    height: int
    frames: tuple[np.ndarray, ...]  # each (height, width, 4) uint8, read-only
    format: str                     # source format: PNG, JPEG or GIF
    durations: tuple[int, ...] = () # per-frame display time in ms (animations)
    loop: int | None = None         # GIF loop count; None plays once

    @property
    def pixels(self) -> np.ndarray:
        """First (or only) frame."""
        return self.frames[0]

    @property
    def is_animated(self) -> bool:
        return len(self.frames) > 1

    def copy_pixels(self) -> np.ndarray:
        """Return a writable, request-owned copy of the first frame."""
        return self.pixels.copy()

    def copy_frames(self) -> list[np.ndarray]:
        """Return writable, request-owned copies of every frame."""
        return [frame.copy() for frame in self.frames]

    def __repr__(self):
        return (
            f"Template({self.id!r}, {self.width}x{self.height}, {self.format}, "
            f"{len(self.frames)} frame(s))"
        )


def _frame_pixels(frame: Image.Image) -> np.ndarray:
    pixels = np.array(frame.convert("RGBA"), dtype=np.uint8)
    pixels.flags.writeable = False
    return pixels


def decode_template(resource_id: str, path: Path) -> Template:
    """Decode an image file into a Template.

    Raises:
        OSError / ValueError: Pillow cannot read the file.
    """
    with Image.open(path) as img:
        loop = img.info.get("loop")
        frames, durations = [], []
        for frame in ImageSequence.Iterator(img):
            frames.append(_frame_pixels(frame))
            durations.append(int(frame.info.get("duration", 0)))

    height, width = frames[0].shape[:2]
    fmt = IMAGE_FORMAT_EXTENSIONS.get(path.suffix.lower().lstrip("."), DEFAULT_IMAGE_FORMAT)
    return Template(
        id=resource_id, width=width, height=height, frames=tuple(frames), format=fmt,
        durations=tuple(durations) if len(frames) > 1 else (),
        loop=loop if len(frames) > 1 else None,
    )


class TemplateStore(ResourceStore):
    kind = ResourceKind.TEMPLATE
    extensions = frozenset(IMAGE_FORMAT_EXTENSIONS)

    def _decode(self, resource_id: str, path: Path) -> Template:
        return decode_template(resource_id, path)
