"""ElementTree helpers shared by the document parsers."""

from xml.etree import ElementTree as ET

NS = {
    "opf": "http://www.idpf.org/2007/opf",
    "dc": "http://purl.org/dc/elements/1.1/",
    "container": "urn:oasis:names:tc:opendocument:xmlns:container",
    "ncx": "http://www.daisy.org/z3986/2005/ncx/",
    "xhtml": "http://www.w3.org/1999/xhtml",
    "epub": "http://www.idpf.org/2007/ops",
    "smil": "http://www.w3.org/ns/SMIL",
    "enc": "http://www.w3.org/2001/04/xmlenc#",
    "ds": "http://www.w3.org/2000/09/xmldsig#",
    "comp": "http://www.idpf.org/2016/encryption#compression",
    "xml": "http://www.w3.org/XML/1998/namespace",
}

XML_LANG = "{http://www.w3.org/XML/1998/namespace}lang"


def qname(prefix: str, name: str) -> str:
    """Clark notation name, e.g. qname("opf", "meta") -> "{http://...opf}meta"."""
    return f"{{{NS[prefix]}}}{name}"


def local_name(el: ET.Element) -> str:
    tag = el.tag if isinstance(el.tag, str) else ""
    return tag.rsplit("}", 1)[-1]


def namespace_of(el: ET.Element) -> str | None:
    tag = el.tag if isinstance(el.tag, str) else ""
    if tag.startswith("{"):
        return tag[1:].split("}", 1)[0]
    return None


def is_element(el: ET.Element, name: str, prefix: str | None = None) -> bool:
    """Match by local name, and by namespace when a prefix is given.

    Elements without a namespace match any prefix, which keeps legacy
    documents lacking the default namespace declaration readable.
    """
    if local_name(el) != name:
        return False
    if prefix is None:
        return True
    ns = namespace_of(el)
    return ns is None or ns == NS[prefix]


def children(el: ET.Element, name: str, prefix: str | None = None) -> list[ET.Element]:
    return [child for child in el if is_element(child, name, prefix)]


def first_child(el: ET.Element, name: str, prefix: str | None = None) -> ET.Element | None:
    for child in el:
        if is_element(child, name, prefix):
            return child
    return None


def text_content(el: ET.Element) -> str:
    parts = []
    if el.text:
        parts.append(el.text)
    for child in el:
        parts.append(text_content(child))
        if child.tail:
            parts.append(child.tail)
    return "".join(parts)


def collapse_whitespace(text: str) -> str:
    return " ".join(text.split())
