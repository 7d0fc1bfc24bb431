"""Metadata field adapters.

Projects the resolved metadata item forest of a package document into the
typed Metadata record. Each adapter consumes the items it understands from
a shared MetadataItemsHolder; everything left over ends up in
`other_metadata`.

Notable rules:
- Title: the title refined with title-type "main", else the first title.
  Subtitle: titles refined with title-type "subtitle", lowest display-seq.
- Identifier: the identifier whose id is the package unique-identifier,
  else the first identifier.
- Subjects: a lone subject with a single translation and no code, scheme
  or sort key is split on "," and ";".
- Contributors: a recognised role code overrides the default role of the
  element (creator -> aut, publisher -> pbl, narrator -> nrt); unknown
  codes are kept as free-form roles.
- Languages: with several languages and an RTL page progression, the first
  RTL language found is moved to the front.
"""

from __future__ import annotations

import re
from collections import defaultdict
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from quire.logging import get_logger
from quire.schemas import (
    Contributor,
    Layout,
    Link,
    LocalizedString,
    Metadata,
    Orientation,
    Overflow,
    Presentation,
    ReadingProgression,
    Spread,
    Subject,
)
from quire.services.accessibility import adapt_accessibility
from quire.services.clock import parse_clock_value
from quire.services.metadata_parser import Meta, MetadataItem, MetadataLink
from quire.services.metadata_query import (
    MetadataItemsHolder,
    child_value,
    first_with_property,
    metas_with_property,
)
from quire.services.vocabulary import Vocabularies

logger = get_logger(__name__)

KNOWN_ROLES = frozenset({"aut", "trl", "edt", "pbl", "art", "ill", "clr", "nrt"})

_DEFAULT_ROLES = {
    Vocabularies.DCTERMS + "creator": "aut",
    Vocabularies.DCTERMS + "publisher": "pbl",
    Vocabularies.MEDIA + "narrator": "nrt",
}

RTL_LANGUAGES = ("ar", "fa", "he", "zh", "zh-hant", "zh-tw", "zh-hk", "ko", "ja")

_PARTIAL_DATE_RE = re.compile(r"^(\d{4})(?:-(\d{2}))?$")


@dataclass(frozen=True)
class MetadataAdapterResult:
    metadata: Metadata
    links: list[Link]
    duration_by_id: dict[str, float]
    cover_id: str | None


# ---------------------------------------------------------------------------
# Public entrypoint
# ---------------------------------------------------------------------------


def adapt_metadata(
    items: list[MetadataItem],
    *,
    epub_version: float,
    unique_identifier_id: str | None,
    reading_progression: ReadingProgression,
    display_options: dict[str, str] | None = None,
    fallback_title: str | None = None,
) -> MetadataAdapterResult:
    """Build the publication Metadata from resolved metadata items.

    Args:
        items: Top-level items returned by parse_metadata().
        epub_version: Package version, e.g. 2.0 or 3.0.
        unique_identifier_id: Value of the package unique-identifier attribute.
        reading_progression: Direction declared by the spine.
        display_options: iBooks/Kobo display options (EPUB 2 fixed layout).
        fallback_title: Title to use when the package declares none.

    Returns:
        MetadataAdapterResult with metadata, publication links, durations
        of refined manifest items and the EPUB 2 cover id.
    """
    global_items: list[MetadataItem] = []
    refining_items: list[MetadataItem] = []
    for item in items:
        if item.refines is None or item.refines == item.id:
            global_items.append(item)
        else:
            refining_items.append(item)

    duration_by_id = _durations_by_refined_id(refining_items)

    holder = MetadataItemsHolder(global_items)

    cover = holder.take_first_with_property("cover")
    duration_meta = holder.take_first_with_property(Vocabularies.MEDIA + "duration")
    duration = parse_clock_value(duration_meta.value) if duration_meta else None

    languages = _adapt_languages(holder, reading_progression)
    identifier = _adapt_identifier(holder, unique_identifier_id)

    published_meta = holder.take_first_with_property(Vocabularies.DCTERMS + "date")
    modified_meta = holder.take_first_with_property(Vocabularies.DCTERMS + "modified")
    description_meta = holder.take_first_with_property(Vocabularies.DCTERMS + "description")

    title, sort_as, subtitle = _adapt_titles(holder)
    if title is None and fallback_title:
        title = LocalizedString.of(fallback_title)

    collections, series = _adapt_collections(holder)
    subjects = _adapt_subjects(holder)
    contributors = _adapt_contributors(holder)
    accessibility = adapt_accessibility(holder)
    presentation = _adapt_presentation(holder, epub_version, display_options or {})
    links = _adapt_links(holder)

    other_metadata = _adapt_other_metadata(holder.remaining_items)
    other_metadata["presentation"] = presentation.model_dump(mode="json")

    def by_role(role: str | None) -> list[Contributor]:
        return contributors.get(role, [])

    metadata = Metadata(
        identifier=identifier,
        localized_title=title,
        localized_subtitle=subtitle,
        localized_sort_as=sort_as,
        modified=parse_date(modified_meta.value) if modified_meta else None,
        published=parse_date(published_meta.value) if published_meta else None,
        languages=languages,
        subjects=subjects,
        description=description_meta.value if description_meta else None,
        duration=duration,
        reading_progression=reading_progression,
        authors=by_role("aut"),
        translators=by_role("trl"),
        editors=by_role("edt"),
        publishers=by_role("pbl"),
        artists=by_role("art"),
        illustrators=by_role("ill"),
        colorists=by_role("clr"),
        narrators=by_role("nrt"),
        contributors=by_role(None),
        belongs_to_collections=collections,
        belongs_to_series=series,
        presentation=presentation,
        accessibility=accessibility,
        other_metadata=other_metadata,
    )

    return MetadataAdapterResult(
        metadata=metadata,
        links=links,
        duration_by_id=duration_by_id,
        cover_id=cover.value if cover else None,
    )


def parse_date(value: str) -> datetime | None:
    """Parse an ISO-8601 date, accepting year and year-month precision."""
    value = value.strip()
    partial = _PARTIAL_DATE_RE.match(value)
    try:
        if partial:
            year, month = partial.groups()
            return datetime(int(year), int(month or 1), 1, tzinfo=UTC)
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("metadata_date_unparsable", value=value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


# ---------------------------------------------------------------------------
# Item helpers
# ---------------------------------------------------------------------------


def _localized_string(meta: Meta) -> LocalizedString:
    values: dict[str | None, str] = {meta.lang or None: meta.value}
    for alternate in metas_with_property(meta.children, Vocabularies.META + "alternate-script"):
        values[alternate.lang or None] = alternate.value
    return LocalizedString.from_strings(values)


def _file_as(meta: Meta) -> LocalizedString | None:
    file_as = first_with_property(meta.children, Vocabularies.META + "file-as")
    if file_as is None:
        return None
    return LocalizedString.of(file_as.value, file_as.lang or None)


def _to_float(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _to_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def _durations_by_refined_id(refining_items: list[MetadataItem]) -> dict[str, float]:
    grouped: dict[str, list[MetadataItem]] = defaultdict(list)
    for item in refining_items:
        grouped[item.refines].append(item)

    durations: dict[str, float] = {}
    for refined_id, group in grouped.items():
        meta = first_with_property(group, Vocabularies.MEDIA + "duration")
        if meta is None:
            continue
        seconds = parse_clock_value(meta.value)
        if seconds is None:
            logger.warning("media_duration_unparsable", refines=refined_id, value=meta.value)
            continue
        durations[refined_id] = seconds
    return durations


# ---------------------------------------------------------------------------
# Field adapters
# ---------------------------------------------------------------------------


def _adapt_languages(
    holder: MetadataItemsHolder, reading_progression: ReadingProgression
) -> list[str]:
    languages = [
        meta.value for meta in holder.take_all_with_property(Vocabularies.DCTERMS + "language")
    ]
    if len(languages) > 1 and reading_progression == ReadingProgression.RTL:
        index = next(
            (i for i, lang in enumerate(languages) if lang.lower() in RTL_LANGUAGES), None
        )
        if index:
            languages.insert(0, languages.pop(index))
    return languages


def _adapt_identifier(holder: MetadataItemsHolder, unique_identifier_id: str | None) -> str | None:
    prop = Vocabularies.DCTERMS + "identifier"
    meta = None
    if unique_identifier_id:
        meta = holder.take_first_with_property(prop, item_id=unique_identifier_id)
    if meta is None:
        meta = holder.take_first_with_property(prop)
    return meta.value if meta else None


def _adapt_titles(
    holder: MetadataItemsHolder,
) -> tuple[LocalizedString | None, LocalizedString | None, LocalizedString | None]:
    titles = metas_with_property(holder.remaining_items, Vocabularies.DCTERMS + "title")

    def title_type(meta: Meta) -> str | None:
        return child_value(meta, Vocabularies.META + "title-type")

    main = next((meta for meta in titles if title_type(meta) == "main"), None)
    if main is None and titles:
        main = titles[0]

    subtitles = [meta for meta in titles if title_type(meta) == "subtitle"]
    # Titles without display-seq sort first, stable otherwise
    subtitles.sort(
        key=lambda meta: (
            (seq := _to_int(child_value(meta, Vocabularies.META + "display-seq"))) is not None,
            seq or 0,
        )
    )
    subtitle = subtitles[0] if subtitles else None

    sort_as = _file_as(main) if main is not None else None
    if sort_as is None:
        calibre_sort = first_with_property(holder.remaining_items, "calibre:title_sort")
        if calibre_sort is not None:
            sort_as = LocalizedString.of(calibre_sort.value)

    if main is not None:
        holder.take_item(main)
    if subtitle is not None:
        holder.take_item(subtitle)

    return (
        _localized_string(main) if main else None,
        sort_as,
        _localized_string(subtitle) if subtitle else None,
    )


def _to_contributor(meta: Meta) -> tuple[str | None, Contributor]:
    roles = [
        child.value for child in metas_with_property(meta.children, Vocabularies.META + "role")
    ]
    known_role = next((role for role in roles if role in KNOWN_ROLES), None)

    if meta.property == Vocabularies.META + "belongs-to-collection":
        kind = child_value(meta, Vocabularies.META + "collection-type")
    elif known_role is not None:
        kind = known_role
    else:
        kind = _DEFAULT_ROLES.get(meta.property)

    contributor = Contributor(
        name=_localized_string(meta),
        sort_as=_file_as(meta),
        identifier=child_value(meta, Vocabularies.DCTERMS + "identifier"),
        roles=frozenset(role for role in roles if role not in KNOWN_ROLES),
        position=_to_float(child_value(meta, Vocabularies.META + "group-position")),
    )
    return kind, contributor


def _adapt_contributors(holder: MetadataItemsHolder) -> dict[str | None, list[Contributor]]:
    metas = holder.take_all_with_property(
        Vocabularies.DCTERMS + "creator",
        Vocabularies.DCTERMS + "contributor",
        Vocabularies.DCTERMS + "publisher",
        Vocabularies.MEDIA + "narrator",
    )
    grouped: dict[str | None, list[Contributor]] = defaultdict(list)
    for meta in metas:
        kind, contributor = _to_contributor(meta)
        grouped[kind].append(contributor)
    return dict(grouped)


def _adapt_collections(
    holder: MetadataItemsHolder,
) -> tuple[list[Contributor], list[Contributor]]:
    collections: list[Contributor] = []
    series: list[Contributor] = []
    for meta in holder.take_all_with_property(Vocabularies.META + "belongs-to-collection"):
        kind, collection = _to_contributor(meta)
        (series if kind == "series" else collections).append(collection)

    if not series:
        calibre_series = holder.take_first_with_property("calibre:series")
        if calibre_series is not None:
            index = first_with_property(holder.remaining_items, "calibre:series_index")
            series.append(
                Contributor(
                    name=LocalizedString.of(calibre_series.value, calibre_series.lang),
                    position=_to_float(index.value) if index else None,
                )
            )

    return collections, series


def _adapt_subjects(holder: MetadataItemsHolder) -> list[Subject]:
    subjects = [
        Subject(
            name=_localized_string(meta),
            sort_as=_file_as(meta),
            scheme=child_value(meta, Vocabularies.META + "authority"),
            code=child_value(meta, Vocabularies.META + "term"),
        )
        for meta in holder.take_all_with_property(Vocabularies.DCTERMS + "subject")
    ]

    if len(subjects) == 1:
        subject = subjects[0]
        single = (
            len(subject.name.translations) == 1
            and subject.code is None
            and subject.scheme is None
            and subject.sort_as is None
        )
        if single:
            return _split_subject(subject)
    return subjects


def _split_subject(subject: Subject) -> list[Subject]:
    lang, value = next(iter(subject.name.translations.items()))
    names = [name.strip() for name in re.split(r"[,;]", value)]
    return [
        Subject(name=LocalizedString(translations={lang: name})) for name in names if name
    ]


def _adapt_presentation(
    holder: MetadataItemsHolder, epub_version: float, display_options: dict[str, str]
) -> Presentation:
    def take_value(name: str) -> str | None:
        meta = holder.take_first_with_property(Vocabularies.RENDITION + name)
        return meta.value if meta else None

    flow = take_value("flow")
    spread = take_value("spread")
    orientation = take_value("orientation")
    layout = take_value("layout")
    if epub_version < 3.0:
        layout = "pre-paginated" if display_options.get("fixed-layout") == "true" else "reflowable"

    overflow, continuous = {
        "paginated": (Overflow.PAGINATED, False),
        "scrolled-continuous": (Overflow.SCROLLED, True),
        "scrolled-doc": (Overflow.SCROLLED, False),
    }.get(flow, (Overflow.AUTO, False))

    return Presentation(
        overflow=overflow,
        continuous=continuous,
        layout=Layout.FIXED if layout == "pre-paginated" else Layout.REFLOWABLE,
        orientation={
            "landscape": Orientation.LANDSCAPE,
            "portrait": Orientation.PORTRAIT,
        }.get(orientation, Orientation.AUTO),
        spread={
            "none": Spread.NONE,
            "landscape": Spread.LANDSCAPE,
            "portrait": Spread.BOTH,
            "both": Spread.BOTH,
        }.get(spread, Spread.AUTO),
    )


def _adapt_links(holder: MetadataItemsHolder) -> list[Link]:
    links = []
    for item in holder.take(lambda item: isinstance(item, MetadataLink)):
        contains = []
        if Vocabularies.LINK + "record" in item.rels:
            if Vocabularies.LINK + "onix" in item.properties:
                contains.append("onix")
            if Vocabularies.LINK + "xmp" in item.properties:
                contains.append("xmp")
        links.append(
            Link(
                href=item.href,
                media_type=item.media_type,
                rels=item.rels,
                properties={"contains": contains} if contains else {},
            )
        )
    return links


def _adapt_other_metadata(items: list[MetadataItem]) -> dict[str, Any]:
    grouped: dict[str, list[Any]] = defaultdict(list)
    for item in items:
        if isinstance(item, Meta):
            grouped[item.property].append(_meta_to_value(item))
    return {prop: values[0] if len(values) == 1 else values for prop, values in grouped.items()}


def _meta_to_value(meta: Meta) -> Any:
    if not meta.children:
        return meta.value
    mapped: dict[str, Any] = {}
    for child in meta.children:
        if isinstance(child, Meta):
            mapped[child.property] = _meta_to_value(child)
        else:
            for rel in child.rels:
                mapped[rel] = child.href
    mapped["@value"] = meta.value
    return mapped
