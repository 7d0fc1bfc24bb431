"""Accessibility metadata adapter.

Consumes the schema.org and a11y metadata of a package and builds an
Accessibility record. Returns None when the package declares nothing
accessibility-related.
"""

from __future__ import annotations

from quire.schemas import Accessibility, Certification
from quire.services.metadata_parser import Meta, MetadataItem, MetadataLink
from quire.services.metadata_query import MetadataItemsHolder, child_value, first_with_rel
from quire.services.vocabulary import Vocabularies

_PROFILE_BASE = "http://www.idpf.org/epub/a11y/accessibility-20170105.html"

WCAG_20_A = f"{_PROFILE_BASE}#wcag-a"
WCAG_20_AA = f"{_PROFILE_BASE}#wcag-aa"
WCAG_20_AAA = f"{_PROFILE_BASE}#wcag-aaa"


def _profile_aliases(level: str, suffix: str) -> frozenset[str]:
    urls = [
        f"{scheme}://{host}idpf.org/epub/a11y/accessibility-20170105.html#{suffix}"
        for scheme in ("http", "https")
        for host in ("", "www.")
    ]
    return frozenset({f"EPUB Accessibility 1.1 - WCAG 2.0 Level {level}", *urls})


_PROFILES: dict[str, frozenset[str]] = {
    WCAG_20_A: _profile_aliases("A", "wcag-a"),
    WCAG_20_AA: _profile_aliases("AA", "wcag-aa"),
    WCAG_20_AAA: _profile_aliases("AAA", "wcag-aaa"),
}


def profile_from_string(value: str) -> str | None:
    """Map a conformsTo value to a recognised accessibility profile IRI."""
    for profile, aliases in _PROFILES.items():
        if value in aliases:
            return profile
    return None


def _profile_of(item: MetadataItem) -> str | None:
    conforms_to = Vocabularies.DCTERMS + "conformsTo"
    if isinstance(item, Meta) and item.property == conforms_to:
        return profile_from_string(item.value)
    if isinstance(item, MetadataLink) and conforms_to in item.rels:
        return profile_from_string(item.href)
    return None


def _distinct(values) -> list[str]:
    return list(dict.fromkeys(values))


def adapt_accessibility(holder: MetadataItemsHolder) -> Accessibility | None:
    """Consume accessibility items from the holder.

    Args:
        holder: Pool of global metadata items.

    Returns:
        Accessibility record, or None if no item was consumed.
    """
    initial_count = len(holder.remaining_items)

    conforms_to = _distinct(
        _profile_of(item) for item in holder.take(lambda item: _profile_of(item) is not None)
    )

    summary = holder.take_first_with_property(Vocabularies.SCHEMA + "accessibilitySummary")

    access_modes = _distinct(
        meta.value for meta in holder.take_all_with_property(Vocabularies.SCHEMA + "accessMode")
    )

    access_modes_sufficient: list[list[str]] = []
    for meta in holder.take_all_with_property(Vocabularies.SCHEMA + "accessModeSufficient"):
        group = _distinct(part.strip() for part in meta.value.split(",") if part.strip())
        if group and group not in access_modes_sufficient:
            access_modes_sufficient.append(group)

    features = _distinct(
        meta.value
        for meta in holder.take_all_with_property(Vocabularies.SCHEMA + "accessibilityFeature")
    )
    hazards = _distinct(
        meta.value
        for meta in holder.take_all_with_property(Vocabularies.SCHEMA + "accessibilityHazard")
    )

    certification = _adapt_certification(holder)

    if len(holder.remaining_items) == initial_count:
        return None

    return Accessibility(
        conforms_to=conforms_to,
        certification=certification,
        summary=summary.value if summary else None,
        access_modes=access_modes,
        access_modes_sufficient=access_modes_sufficient,
        features=features,
        hazards=hazards,
    )


def _adapt_certification(holder: MetadataItemsHolder) -> Certification | None:
    certified_by = holder.take_first_with_property(Vocabularies.A11Y + "certifiedBy")
    consumed = certified_by is not None

    credential = child_value(certified_by, Vocabularies.A11Y + "certifierCredential")
    report_link = (
        first_with_rel(certified_by.children, Vocabularies.A11Y + "certifierReport")
        if certified_by is not None
        else None
    )
    report = report_link.href if report_link is not None else None

    if credential is None:
        meta = holder.take_first_with_property(Vocabularies.A11Y + "certifierCredential")
        if meta is not None:
            credential = meta.value
            consumed = True

    if report is None:
        meta = holder.take_first_with_property(Vocabularies.A11Y + "certifierReport")
        if meta is not None:
            report = meta.value
            consumed = True

    if report is None:
        link = holder.take_first_with_rel(Vocabularies.A11Y + "certifierReport")
        if link is not None:
            report = link.href
            consumed = True

    if not consumed:
        return None
    return Certification(
        certified_by=certified_by.value if certified_by else None,
        credential=credential,
        report=report,
    )
