"""Test helper functions.

In-memory builders for package documents and EPUB archives. Nothing here
touches the filesystem or the network.
"""

import io
import zipfile
from xml.etree import ElementTree as ET

from quire.container import InMemoryContainer

CONTAINER_XML = """\
<?xml version="1.0" encoding="UTF-8"?>
<container xmlns="urn:oasis:names:tc:opendocument:xmlns:container" version="1.0">
  <rootfiles>
    <rootfile full-path="{opf_path}" media-type="application/oebps-package+xml"/>
  </rootfiles>
</container>"""

XHTML_NS = 'xmlns="http://www.w3.org/1999/xhtml" xmlns:epub="http://www.idpf.org/2007/ops"'


def build_opf(
    metadata: str = "<dc:title>Test Book</dc:title>",
    manifest: str = "",
    spine: str = "",
    *,
    version: str = "3.0",
    unique_identifier: str | None = "uid",
    prefix: str | None = None,
    spine_attrs: str = "",
) -> str:
    """Build an OPF package document from raw metadata/manifest/spine markup."""
    uid_attr = f' unique-identifier="{unique_identifier}"' if unique_identifier else ""
    prefix_attr = f' prefix="{prefix}"' if prefix else ""
    return f"""\
<?xml version="1.0" encoding="UTF-8"?>
<package xmlns="http://www.idpf.org/2007/opf"
         xmlns:dc="http://purl.org/dc/elements/1.1/"
         xmlns:opf="http://www.idpf.org/2007/opf"
         version="{version}"{uid_attr}{prefix_attr}>
  <metadata>
{metadata}
  </metadata>
  <manifest>
{manifest}
  </manifest>
  <spine{spine_attrs}>
{spine}
  </spine>
</package>"""


def build_chapter(body: str = "<p>Hello</p>") -> str:
    return f"""\
<?xml version="1.0" encoding="UTF-8"?>
<html {XHTML_NS}>
<head><title>Chapter</title></head>
<body>
{body}
</body>
</html>"""


def build_nav(body: str) -> str:
    """Wrap markup (usually one or more <nav> elements) in an XHTML document."""
    return f"""\
<?xml version="1.0" encoding="UTF-8"?>
<html {XHTML_NS}>
<head><title>Navigation</title></head>
<body>
{body}
</body>
</html>"""


def build_ncx(nav_points: str, page_targets: str | None = None) -> str:
    page_list = f"<pageList>{page_targets}</pageList>" if page_targets is not None else ""
    return f"""\
<?xml version="1.0" encoding="UTF-8"?>
<ncx xmlns="http://www.daisy.org/z3986/2005/ncx/" version="2005-1">
  <head/>
  <docTitle><text>Test Book</text></docTitle>
  <navMap>
{nav_points}
  </navMap>
  {page_list}
</ncx>"""


def nav_point(label: str, src: str, children: str = "") -> str:
    return (
        f"<navPoint><navLabel><text>{label}</text></navLabel>"
        f'<content src="{src}"/>{children}</navPoint>'
    )


def parse_xml(text: str) -> ET.Element:
    return ET.fromstring(text)


def make_epub(
    files: dict[str, str | bytes],
    *,
    opf_path: str = "OEBPS/content.opf",
    include_container: bool = True,
) -> bytes:
    """Build an EPUB archive in memory.

    `files` maps archive paths to contents; META-INF/container.xml pointing
    at opf_path is added unless include_container is False.
    """
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        zf.writestr(zipfile.ZipInfo("mimetype"), "application/epub+zip")
        if include_container:
            zf.writestr(
                "META-INF/container.xml",
                CONTAINER_XML.format(opf_path=opf_path),
                compress_type=zipfile.ZIP_DEFLATED,
            )
        for path, content in files.items():
            zf.writestr(path, content, compress_type=zipfile.ZIP_DEFLATED)
    return buf.getvalue()


def make_container(
    files: dict[str, str | bytes], *, opf_path: str = "OEBPS/content.opf"
) -> InMemoryContainer:
    """Build an InMemoryContainer with a container.xml pointing at opf_path."""
    container = InMemoryContainer(files)
    container.put("META-INF/container.xml", CONTAINER_XML.format(opf_path=opf_path))
    return container
