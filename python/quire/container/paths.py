"""Href resolution utilities.

This module provides the single point of logic for turning hrefs found in
package documents into container paths. Every href stored on a Link or
looked up in a container goes through resolve_href().

Href Invariant:
    - Package-relative POSIX path, e.g. OEBPS/text/chapter1.xhtml
    - No leading slash
    - Percent-escapes decoded
    - An optional #fragment is preserved verbatim

Rules:
    - Relative hrefs resolve against the directory of the referencing document
    - Absolute paths ("/OEBPS/x.xhtml") are rooted at the container
    - Hrefs with a URL scheme (http:, mailto:) are returned unchanged
"""

import posixpath
import re
from urllib.parse import unquote

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*:")


def is_external(href: str) -> bool:
    """Whether the href carries a URL scheme and so points outside the container."""
    return bool(_SCHEME_RE.match(href)) and not href.startswith("urn:")


def normalize_path(path: str) -> str:
    """Normalize a container path.

    Args:
        path: Raw path, possibly with a leading slash or "." segments.

    Returns:
        Normalized path without leading slash. Empty for the container root.
    """
    path = path.replace("\\", "/").lstrip("/")
    if not path:
        return ""
    normalized = posixpath.normpath(path)
    return "" if normalized == "." else normalized


def strip_fragment(href: str) -> str:
    """Remove a trailing #fragment from an href."""
    return href.split("#", 1)[0]


def resolve_href(base_path: str, href: str) -> str:
    """Resolve an href found in the document at base_path.

    Args:
        base_path: Container path of the referencing document.
        href: Href as written in the document.

    Returns:
        Container path of the target, with its fragment if any.

    Example:
        >>> resolve_href("OEBPS/content.opf", "text/ch%201.xhtml#p2")
        'OEBPS/text/ch 1.xhtml#p2'
    """
    href = href.strip()
    if is_external(href):
        return href

    path, sep, fragment = href.partition("#")
    path = unquote(path)

    if not path:
        resolved = normalize_path(base_path)
    elif path.startswith("/"):
        resolved = normalize_path(path)
    else:
        resolved = normalize_path(posixpath.join(posixpath.dirname(base_path), path))

    return f"{resolved}#{fragment}" if sep else resolved
