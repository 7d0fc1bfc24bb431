"""Property vocabulary resolution.

EPUB package documents name properties with short tokens ("title-type",
"dcterms:modified", "rendition:layout"). This module expands a token to its
canonical IRI using:

- the reserved prefixes every EPUB reading system knows,
- the prefixes declared by the document's `prefix` attribute, which override
  reserved ones of the same name,
- an optional default vocabulary for unprefixed tokens.

Unresolvable tokens yield None; callers drop them and carry on.
"""

import re

from quire.logging import get_logger

logger = get_logger(__name__)


class Vocabularies:
    """Canonical vocabulary IRIs."""

    # Default vocabularies
    META = "http://idpf.org/epub/vocab/package/meta/#"
    LINK = "http://idpf.org/epub/vocab/package/link/#"
    ITEM = "http://idpf.org/epub/vocab/package/item/#"
    ITEMREF = "http://idpf.org/epub/vocab/package/itemref/#"
    TYPE = "http://idpf.org/epub/vocab/structure/#"

    # Reserved prefixes
    A11Y = "http://www.idpf.org/epub/vocab/package/a11y/#"
    DCTERMS = "http://purl.org/dc/terms/"
    MARC = "http://id.loc.gov/vocabulary/"
    MEDIA = "http://www.idpf.org/epub/vocab/overlays/#"
    ONIX = "http://www.editeur.org/ONIX/book/codelists/current.html#"
    RENDITION = "http://www.idpf.org/vocab/rendition/#"
    SCHEMA = "http://schema.org/"
    XSD = "http://www.w3.org/2001/XMLSchema#"
    MSV = "http://www.idpf.org/epub/vocab/structure/magazine/#"
    PRISM = "http://www.prismstandard.org/specifications/3.0/PRISM_CV_Spec_3.0.htm#"


RESERVED_PREFIXES: dict[str, str] = {
    "a11y": Vocabularies.A11Y,
    "dcterms": Vocabularies.DCTERMS,
    "marc": Vocabularies.MARC,
    "media": Vocabularies.MEDIA,
    "onix": Vocabularies.ONIX,
    "rendition": Vocabularies.RENDITION,
    "schema": Vocabularies.SCHEMA,
    "xsd": Vocabularies.XSD,
    "msv": Vocabularies.MSV,
    "prism": Vocabularies.PRISM,
}

# "foaf: http://xmlns.com/foaf/spec/ dbp: http://dbpedia.org/ontology/"
_PREFIX_DECLARATION_RE = re.compile(r"([^\s:]+):\s+(\S+)")


def parse_prefixes(declaration: str | None) -> dict[str, str]:
    """Parse a `prefix` attribute into a prefix -> IRI map."""
    if not declaration:
        return {}
    return {name: iri for name, iri in _PREFIX_DECLARATION_RE.findall(declaration)}


def build_prefix_map(declaration: str | None) -> dict[str, str]:
    """Combine reserved prefixes with the ones declared by a document.

    Declared prefixes win over reserved prefixes of the same name.
    """
    return {**RESERVED_PREFIXES, **parse_prefixes(declaration)}


def resolve_property(
    token: str,
    prefix_map: dict[str, str],
    default_vocab: str | None = None,
) -> str | None:
    """Expand a property token to its IRI.

    Args:
        token: "suffix" or "prefix:suffix".
        prefix_map: Prefix -> IRI map (see build_prefix_map).
        default_vocab: Vocabulary IRI for unprefixed tokens.

    Returns:
        The canonical IRI, or None when the token cannot be resolved.
    """
    token = token.strip()
    if not token:
        return None

    prefix, sep, suffix = token.partition(":")
    if not sep:
        if default_vocab is None:
            return None
        return default_vocab + token

    if not prefix or not suffix:
        return None
    iri = prefix_map.get(prefix)
    if iri is None:
        return None
    return iri + suffix


def resolve_properties(
    value: str | None,
    prefix_map: dict[str, str],
    default_vocab: str | None = None,
) -> list[str]:
    """Resolve a whitespace-separated list of tokens, dropping unresolved ones."""
    resolved: list[str] = []
    for token in (value or "").split():
        iri = resolve_property(token, prefix_map, default_vocab)
        if iri is None:
            logger.warning("property_unresolved", token=token)
            continue
        resolved.append(iri)
    return resolved
