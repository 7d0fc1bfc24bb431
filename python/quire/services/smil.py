"""SMIL media overlay parsing.

`<seq>` and `<par>` elements of the SMIL body nest into a tree of
MediaOverlayNode. Rules:

- A `<par>` without a `<text src>` is dropped.
- A `<seq>` becomes a single node only when it has an `epub:textref` and
  its children reference exactly one distinct audio file. Otherwise the
  wrapper disappears and its children are spliced into the parent.
- A malformed clipBegin/clipEnd leaves that bound unset.
"""

from __future__ import annotations

from xml.etree import ElementTree as ET

from quire.container.paths import resolve_href, strip_fragment
from quire.logging import get_logger
from quire.schemas import MediaOverlayNode
from quire.services.clock import parse_clock_value
from quire.services.vocabulary import Vocabularies, build_prefix_map, resolve_properties
from quire.services.xmltree import first_child, is_element, qname

logger = get_logger(__name__)

_EPUB_TYPE = qname("epub", "type")
_EPUB_TEXTREF = qname("epub", "textref")
_EPUB_PREFIX = qname("epub", "prefix")


def parse_smil(document: ET.Element, path: str) -> MediaOverlayNode | None:
    """Parse a SMIL document.

    Args:
        document: Root `<smil>` element.
        path: Container path of the document; hrefs resolve against it.

    Returns:
        A root node whose children are the top-level nodes of the body,
        or None when the document has no `<body>`.
    """
    body = first_child(document, "body", "smil")
    if body is None:
        logger.warning("smil_body_missing", path=path)
        return None

    parser = _SmilParser(path, build_prefix_map(document.get(_EPUB_PREFIX)))
    textref = body.get(_EPUB_TEXTREF)
    return MediaOverlayNode(
        text=resolve_href(path, textref) if textref else "",
        roles=parser.roles(body),
        children=parser.parse_children(body),
    )


class _SmilParser:
    def __init__(self, path: str, prefix_map: dict[str, str]):
        self.path = path
        self.prefix_map = prefix_map

    def roles(self, el: ET.Element) -> list[str]:
        return resolve_properties(el.get(_EPUB_TYPE), self.prefix_map, Vocabularies.TYPE)

    def parse_children(self, parent: ET.Element) -> list[MediaOverlayNode]:
        nodes: list[MediaOverlayNode] = []
        for child in parent:
            if is_element(child, "par", "smil"):
                node = self.parse_par(child)
                if node is not None:
                    nodes.append(node)
            elif is_element(child, "seq", "smil"):
                nodes.extend(self.parse_seq(child))
        return nodes

    def parse_seq(self, seq: ET.Element) -> list[MediaOverlayNode]:
        nodes = self.parse_children(seq)
        textref = (seq.get(_EPUB_TEXTREF) or "").strip()
        audio_files = list(dict.fromkeys(node.audio for node in nodes if node.audio is not None))
        if not textref or len(audio_files) != 1:
            return nodes

        return [
            MediaOverlayNode(
                text=resolve_href(self.path, textref),
                audio=audio_files[0],
                clip_begin=nodes[0].clip_begin,
                clip_end=nodes[-1].clip_end,
                roles=self.roles(seq),
                children=nodes,
            )
        ]

    def parse_par(self, par: ET.Element) -> MediaOverlayNode | None:
        text = first_child(par, "text", "smil")
        src = (text.get("src") or "").strip() if text is not None else ""
        if not src:
            logger.warning("smil_par_missing_text", path=self.path, par_id=par.get("id"))
            return None

        audio = None
        clip_begin = clip_end = None
        audio_el = first_child(par, "audio", "smil")
        if audio_el is not None and (audio_el.get("src") or "").strip():
            audio = strip_fragment(resolve_href(self.path, audio_el.get("src")))
            clip_begin = self._clock(audio_el, "clipBegin")
            clip_end = self._clock(audio_el, "clipEnd")

        return MediaOverlayNode(
            text=resolve_href(self.path, src),
            audio=audio,
            clip_begin=clip_begin,
            clip_end=clip_end,
            roles=self.roles(par),
        )

    def _clock(self, audio_el: ET.Element, attribute: str) -> float | None:
        raw = audio_el.get(attribute)
        if raw is None:
            return None
        seconds = parse_clock_value(raw)
        if seconds is None:
            logger.warning("smil_clock_value_invalid", path=self.path, attribute=attribute, value=raw)
        return seconds
