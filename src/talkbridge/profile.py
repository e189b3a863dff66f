"""Per-product configuration data.

Every difference between supported editors that is not control lookup lives
here as immutable data: process identity, window titles, limits and the
parameter catalog. Control lookup itself belongs to a ``ControlLocator``.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from talkbridge.parameters import ParameterCatalog, ParameterDescriptor
from talkbridge.remote import ControlKind
from talkbridge.state import WindowSignal


class ProductProfile(BaseModel):
    """Immutable description of one voice-synthesis editor."""

    model_config = ConfigDict(frozen=True)

    talker_name: str
    process_file_name: str
    product_name: str | None = None

    main_title_prefix: str
    startup_titles: frozenset[str] = frozenset()
    save_options_title: str | None = None
    save_dialog_title: str
    save_progress_title: str | None = None
    save_complete_title: str | None = None

    text_length_limit: int = Field(default=2**31 - 1, gt=0)
    can_save_blank_text: bool = False
    has_characters: bool = False
    audio_extension: str = ".wav"
    sidecar_extension: str | None = ".txt"

    parameters: tuple[ParameterDescriptor, ...] = ()
    idle_control: ControlKind = ControlKind.SAVE_BUTTON
    busy_indicator: ControlKind | None = None

    @field_validator("process_file_name", "talker_name", "main_title_prefix", "save_dialog_title")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    @field_validator("audio_extension", "sidecar_extension")
    @classmethod
    def _dotted(cls, value: str | None) -> str | None:
        if value is not None and not value.startswith("."):
            return "." + value
        return value

    @property
    def file_saving_titles(self) -> frozenset[str]:
        titles = (self.save_options_title, self.save_dialog_title, self.save_progress_title)
        return frozenset(title for title in titles if title)

    def catalog(self) -> ParameterCatalog:
        return ParameterCatalog(self.parameters)

    def classify_title(self, title: str | None) -> WindowSignal:
        """Bucket a top-level window title without touching the remote bridge."""
        if title is None:
            return WindowSignal.OTHER
        if not title or title in self.startup_titles:
            return WindowSignal.STARTUP_OR_CLEANUP
        if title.startswith(self.main_title_prefix):
            return WindowSignal.MAIN
        if title in self.file_saving_titles:
            return WindowSignal.FILE_SAVING
        return WindowSignal.OTHER
