"""Publication metadata schemas.

Typed projection of the package document metadata: titles, contributors,
subjects, collections, accessibility and presentation (rendition) hints.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from quire.schemas.link import Link

EPUB_PROFILE = "https://readium.org/webpub-manifest/profiles/epub"

# Key used for strings whose language is not declared
UNDEFINED_LANGUAGE = "und"


# =============================================================================
# Enumerations
# =============================================================================


class ReadingProgression(str, Enum):
    LTR = "ltr"
    RTL = "rtl"
    AUTO = "auto"


class Overflow(str, Enum):
    AUTO = "auto"
    PAGINATED = "paginated"
    SCROLLED = "scrolled"


class Layout(str, Enum):
    REFLOWABLE = "reflowable"
    FIXED = "fixed"


class Orientation(str, Enum):
    AUTO = "auto"
    LANDSCAPE = "landscape"
    PORTRAIT = "portrait"


class Spread(str, Enum):
    AUTO = "auto"
    BOTH = "both"
    NONE = "none"
    LANDSCAPE = "landscape"


class Page(str, Enum):
    LEFT = "left"
    RIGHT = "right"
    CENTER = "center"


# =============================================================================
# Value objects
# =============================================================================


class LocalizedString(BaseModel):
    """A string with one translation per language tag.

    Strings without a declared language are stored under UNDEFINED_LANGUAGE.
    """

    translations: dict[str, str]

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_strings(cls, values: dict[str | None, str]) -> LocalizedString:
        return cls(
            translations={(lang or UNDEFINED_LANGUAGE): value for lang, value in values.items()}
        )

    @classmethod
    def of(cls, value: str, lang: str | None = None) -> LocalizedString:
        return cls.from_strings({lang: value})

    @property
    def string(self) -> str:
        """Default translation: the undefined-language one, else the first."""
        if UNDEFINED_LANGUAGE in self.translations:
            return self.translations[UNDEFINED_LANGUAGE]
        return next(iter(self.translations.values()), "")


class Contributor(BaseModel):
    """A contributor or a collection the publication belongs to."""

    name: LocalizedString
    sort_as: LocalizedString | None = None
    identifier: str | None = None
    roles: frozenset[str] = frozenset()
    position: float | None = None

    model_config = ConfigDict(frozen=True)


class Subject(BaseModel):
    name: LocalizedString
    sort_as: LocalizedString | None = None
    scheme: str | None = None
    code: str | None = None

    model_config = ConfigDict(frozen=True)


class Certification(BaseModel):
    certified_by: str | None = None
    credential: str | None = None
    report: str | None = None

    model_config = ConfigDict(frozen=True)


class Accessibility(BaseModel):
    """Accessibility metadata.

    Attributes:
        conforms_to: Recognised accessibility profile IRIs.
        certification: Who evaluated the publication, if declared.
        summary: Human-readable accessibility summary.
        access_modes: Access modes (textual, visual, auditory...).
        access_modes_sufficient: Groups of modes sufficient to consume the content.
        features: Accessibility features.
        hazards: Accessibility hazards.
    """

    conforms_to: list[str] = Field(default_factory=list)
    certification: Certification | None = None
    summary: str | None = None
    access_modes: list[str] = Field(default_factory=list)
    access_modes_sufficient: list[list[str]] = Field(default_factory=list)
    features: list[str] = Field(default_factory=list)
    hazards: list[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class Presentation(BaseModel):
    overflow: Overflow = Overflow.AUTO
    continuous: bool = False
    layout: Layout = Layout.REFLOWABLE
    orientation: Orientation = Orientation.AUTO
    spread: Spread = Spread.AUTO

    model_config = ConfigDict(frozen=True)

    def layout_of(self, link: Link) -> Layout:
        """Layout of a single resource: its own `layout` property wins."""
        value = link.properties.get("layout")
        if value is not None:
            return Layout(value)
        return self.layout


# =============================================================================
# Metadata
# =============================================================================


class Metadata(BaseModel):
    """Publication metadata."""

    identifier: str | None = None
    conforms_to: list[str] = Field(default_factory=lambda: [EPUB_PROFILE])
    localized_title: LocalizedString | None = None
    localized_subtitle: LocalizedString | None = None
    localized_sort_as: LocalizedString | None = None
    modified: datetime | None = None
    published: datetime | None = None
    languages: list[str] = Field(default_factory=list)
    subjects: list[Subject] = Field(default_factory=list)
    description: str | None = None
    duration: float | None = None
    reading_progression: ReadingProgression = ReadingProgression.AUTO

    authors: list[Contributor] = Field(default_factory=list)
    translators: list[Contributor] = Field(default_factory=list)
    editors: list[Contributor] = Field(default_factory=list)
    publishers: list[Contributor] = Field(default_factory=list)
    artists: list[Contributor] = Field(default_factory=list)
    illustrators: list[Contributor] = Field(default_factory=list)
    colorists: list[Contributor] = Field(default_factory=list)
    narrators: list[Contributor] = Field(default_factory=list)
    contributors: list[Contributor] = Field(default_factory=list)

    belongs_to_collections: list[Contributor] = Field(default_factory=list)
    belongs_to_series: list[Contributor] = Field(default_factory=list)

    presentation: Presentation = Field(default_factory=Presentation)
    accessibility: Accessibility | None = None
    other_metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    @property
    def title(self) -> str | None:
        return self.localized_title.string if self.localized_title else None

    @property
    def subtitle(self) -> str | None:
        return self.localized_subtitle.string if self.localized_subtitle else None
