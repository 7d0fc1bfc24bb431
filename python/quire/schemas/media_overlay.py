"""Media overlay schema."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class MediaOverlayNode(BaseModel):
    """A timed node of a media overlay.

    Attributes:
        text: Href of the text fragment, fragment included.
        audio: Href of the audio file, without fragment.
        clip_begin: Clip start in seconds.
        clip_end: Clip end in seconds.
        roles: Structural semantics (epub:type) IRIs.
        children: Nested nodes.
    """

    text: str
    audio: str | None = None
    clip_begin: float | None = None
    clip_end: float | None = None
    roles: list[str] = Field(default_factory=list)
    children: list[MediaOverlayNode] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @property
    def audio_fragment(self) -> str | None:
        """Media fragment of the clip, e.g. "t=1.5,3.25"."""
        if self.audio is None or (self.clip_begin is None and self.clip_end is None):
            return None
        begin = "" if self.clip_begin is None else f"{self.clip_begin:g}"
        end = "" if self.clip_end is None else f",{self.clip_end:g}"
        return f"t={begin}{end}"

    @property
    def audio_href(self) -> str | None:
        if self.audio is None:
            return None
        fragment = self.audio_fragment
        return f"{self.audio}#{fragment}" if fragment else self.audio
