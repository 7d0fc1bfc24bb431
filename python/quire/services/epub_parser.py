"""EPUB publication parsing.

Entry point tying the package-level documents together:

1. container.xml -> path of the OPF package document
2. package document -> metadata forest, manifest, spine
3. display options (EPUB 2 fixed layout), encryption.xml
4. metadata and resource adapters -> Metadata, reading order, resources
5. Navigation Document, else NCX -> table of contents and page list
6. deobfuscating container + positions service -> Publication

Missing mandatory structures raise InvalidPackageError. Optional documents
that are absent or unreadable are skipped with a warning.
"""

from __future__ import annotations

from pathlib import Path

from quire.config import Settings, get_settings
from quire.container.archive import ArchiveLimits, ZipContainer
from quire.container.base import Container, TransformingContainer
from quire.container.directory import DirectoryContainer
from quire.container.paths import strip_fragment
from quire.errors import InvalidPackageError, ParseErrorCode, QuireError
from quire.logging import clear_publication_context, get_logger, set_publication_context
from quire.schemas import Link, Manifest
from quire.services.deobfuscation import Deobfuscator
from quire.services.encryption import ENCRYPTION_PATH, parse_encryption
from quire.services.metadata_adapter import adapt_metadata
from quire.services.navigation import parse_navigation_document
from quire.services.ncx import parse_ncx
from quire.services.package_document import PackageDocument, parse_package_document
from quire.services.positions import PositionsService, strategy_from_settings
from quire.services.publication import Publication
from quire.services.resource_adapter import adapt_resources
from quire.services.vocabulary import Vocabularies
from quire.services.xmltree import children, is_element, text_content

logger = get_logger(__name__)

CONTAINER_PATH = "META-INF/container.xml"
PACKAGE_MEDIA_TYPE = "application/oebps-package+xml"
NCX_MEDIA_TYPE = "application/x-dtbncx+xml"

DISPLAY_OPTIONS_PATHS = (
    "META-INF/com.apple.ibooks.display-options.xml",
    "META-INF/com.kobobooks.display-options.xml",
)


# ---------------------------------------------------------------------------
# Public entrypoints
# ---------------------------------------------------------------------------


def open_publication(
    source: str | Path | bytes | Container,
    *,
    settings: Settings | None = None,
    fallback_title: str | None = None,
) -> Publication:
    """Open and parse a publication.

    Args:
        source: Path of an EPUB file or exploded EPUB directory, raw EPUB
            bytes, or an existing Container.
        settings: Settings to use instead of the environment ones.
        fallback_title: Title used when the package declares none. Defaults
            to the file name without extension for path sources.

    Returns:
        The parsed Publication. Closing it closes the container.

    Raises:
        ArchiveUnsafeError: If the archive fails a safety check.
        InvalidPackageError: If a mandatory structure is missing.
        DecodingError: If a mandatory document is not well-formed.
    """
    if settings is None:
        settings = get_settings()

    if isinstance(source, Container):
        return parse_publication(source, settings=settings, fallback_title=fallback_title)

    if isinstance(source, bytes):
        container: Container = ZipContainer(source, ArchiveLimits.from_settings(settings))
    else:
        path = Path(source)
        if fallback_title is None:
            fallback_title = path.stem
        if path.is_dir():
            container = DirectoryContainer(path)
        else:
            container = ZipContainer(path, ArchiveLimits.from_settings(settings))

    try:
        return parse_publication(container, settings=settings, fallback_title=fallback_title)
    except QuireError:
        container.close()
        raise


def parse_publication(
    container: Container,
    *,
    settings: Settings | None = None,
    fallback_title: str | None = None,
) -> Publication:
    """Parse the publication held by a container.

    Args:
        container: Raw container of the publication.
        settings: Settings to use instead of the environment ones.
        fallback_title: Title used when the package declares none.

    Returns:
        The parsed Publication, reading through a deobfuscating container.
    """
    if settings is None:
        settings = get_settings()

    package_path = find_package_path(container)
    set_publication_context(None, package_path)
    try:
        package = parse_package_document(container.read_xml(package_path), package_path)

        metadata_result = adapt_metadata(
            package.metadata,
            epub_version=package.epub_version,
            unique_identifier_id=package.unique_identifier_id,
            reading_progression=package.spine.direction,
            display_options=parse_display_options(container),
            fallback_title=fallback_title,
        )
        metadata = metadata_result.metadata
        set_publication_context(metadata.identifier, package_path)

        encryption_data = parse_encryption(container.read_xml_optional(ENCRYPTION_PATH))

        resources = adapt_resources(
            package.spine,
            package.manifest,
            encryption_data=encryption_data,
            cover_id=metadata_result.cover_id,
            duration_by_id=metadata_result.duration_by_id,
        )

        collections = parse_navigation(container, package)
        table_of_contents = collections.pop("toc", [])

        manifest = Manifest(
            metadata=metadata,
            links=metadata_result.links,
            reading_order=resources.reading_order,
            resources=resources.resources,
            table_of_contents=table_of_contents,
            subcollections=collections,
        )

        deobfuscating = TransformingContainer(
            container, [Deobfuscator(metadata.identifier, encryption_data)]
        )
        positions_service = PositionsService(
            manifest.reading_order,
            metadata.presentation,
            deobfuscating,
            strategy=strategy_from_settings(settings),
            max_workers=settings.positions_max_workers,
        )

        logger.info(
            "publication_parsed",
            epub_version=package.epub_version,
            reading_order_count=len(manifest.reading_order),
            resource_count=len(manifest.resources),
            toc_count=len(table_of_contents),
            encrypted_count=len(encryption_data),
        )
        return Publication(manifest, deobfuscating, positions_service)
    finally:
        clear_publication_context()


# ---------------------------------------------------------------------------
# Package-level documents
# ---------------------------------------------------------------------------


def find_package_path(container: Container) -> str:
    """Locate the OPF package document through META-INF/container.xml.

    The first rootfile declaring the OPF media type wins, else the first
    rootfile.

    Raises:
        InvalidPackageError: With E_MISSING_ROOTFILE if container.xml or a
            usable rootfile is missing.
    """
    if container.get(CONTAINER_PATH) is None:
        raise InvalidPackageError(
            f"{CONTAINER_PATH} not found", code=ParseErrorCode.E_MISSING_ROOTFILE
        )
    document = container.read_xml(CONTAINER_PATH)

    rootfiles = [
        el
        for el in document.iter()
        if is_element(el, "rootfile", "container") and (el.get("full-path") or "").strip()
    ]
    rootfile = next(
        (el for el in rootfiles if el.get("media-type") == PACKAGE_MEDIA_TYPE),
        rootfiles[0] if rootfiles else None,
    )
    if rootfile is None:
        raise InvalidPackageError(
            "No rootfile declared in container.xml", code=ParseErrorCode.E_MISSING_ROOTFILE
        )
    return rootfile.get("full-path").strip().lstrip("/")


def parse_display_options(container: Container) -> dict[str, str]:
    """Read the iBooks or Kobo display options, `option@name` -> text."""
    for path in DISPLAY_OPTIONS_PATHS:
        document = container.read_xml_optional(path)
        if document is None:
            continue
        options: dict[str, str] = {}
        for platform in children(document, "platform"):
            for option in children(platform, "option"):
                name = option.get("name")
                if name:
                    options[name] = text_content(option).strip()
        return options
    return {}


def parse_navigation(container: Container, package: PackageDocument) -> dict[str, list[Link]]:
    """Build the navigation collections of a package.

    The Navigation Document is preferred; the table of contents and the page
    list each fall back to the NCX independently when the Navigation Document
    lacks them.
    """
    collections: dict[str, list[Link]] = {}

    nav_item = next(
        (item for item in package.manifest if Vocabularies.ITEM + "nav" in item.properties),
        None,
    )
    if nav_item is not None:
        href = strip_fragment(nav_item.href)
        document = container.read_xml_optional(href)
        if document is not None:
            collections = parse_navigation_document(document, href)

    if collections.get("toc") and collections.get("page-list"):
        return collections

    ncx_collections = _parse_ncx_of(container, package)
    for key in ("toc", "page-list"):
        if not collections.get(key) and ncx_collections.get(key):
            collections[key] = ncx_collections[key]
    return collections


def _parse_ncx_of(container: Container, package: PackageDocument) -> dict[str, list[Link]]:
    items_by_id = {item.id: item for item in package.manifest if item.id is not None}
    ncx_item = items_by_id.get(package.spine.toc) if package.spine.toc else None
    if ncx_item is None:
        ncx_item = next(
            (item for item in package.manifest if item.media_type == NCX_MEDIA_TYPE), None
        )
    if ncx_item is None:
        return {}

    href = strip_fragment(ncx_item.href)
    document = container.read_xml_optional(href)
    if document is None:
        logger.warning("ncx_unavailable", href=href)
        return {}
    return parse_ncx(document, href)
