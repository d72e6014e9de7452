"""Error taxonomy for the captioning engine.

Every failure of Engine.caption() is one of the CaptionError subclasses
below, so a transport layer can map them to responses exhaustively:

  - ResourceNotFound:  no template/font file matches the identifier.
  - ResourceLoadError: the file exists but could not be decoded.
  - LayoutFailed:      a caption's text cannot fit its band.
  - RenderError:       the rasterizer failed while drawing a valid plan.
  - EncodeError:       the final image could not be encoded.
  - ConfigError:       invalid directories or config values.
"""

from enum import Enum


class ResourceKind(str, Enum):
    TEMPLATE = "template"
    FONT = "font"


class LayoutReason(str, Enum):
    TEXT_TOO_LARGE = "text_too_large"
    UNBREAKABLE_WORD_TOO_WIDE = "unbreakable_word_too_wide"


class CaptionError(Exception):
    """Base class for all captioning errors."""


class ConfigError(CaptionError):
    """Invalid engine configuration (store paths or config values)."""


class ResourceNotFound(CaptionError):
    def __init__(self, kind: ResourceKind, resource_id: str):
        self.kind = ResourceKind(kind)
        self.resource_id = resource_id
        super().__init__(f"cannot find {self.kind.value} '{resource_id}'")


class ResourceLoadError(CaptionError):
    def __init__(self, kind: ResourceKind, resource_id: str, cause: Exception):
        self.kind = ResourceKind(kind)
        self.resource_id = resource_id
        self.cause = cause
        super().__init__(
            f"failed to load {self.kind.value} '{resource_id}': {cause}"
        )


class LayoutFailed(CaptionError):
    """Text could not be laid out within its box.

    caption_index is None when raised by compute_layout() directly; the
    engine re-raises with the index of the offending caption.
    """

    def __init__(
        self,
        reason: LayoutReason,
        detail: str = "",
        caption_index: int | None = None,
    ):
        self.reason = LayoutReason(reason)
        self.detail = detail
        self.caption_index = caption_index
        msg = self.reason.value
        if caption_index is not None:
            msg = f"caption {caption_index}: {msg}"
        if detail:
            msg = f"{msg} ({detail})"
        super().__init__(msg)

    def for_caption(self, caption_index: int) -> "LayoutFailed":
        """Return a copy of this error attributed to a caption."""
        return LayoutFailed(self.reason, self.detail, caption_index)


class RenderError(CaptionError):
    """Internal drawing fault while rendering a layout plan."""


class EncodeError(CaptionError):
    """Failure encoding the final image."""
