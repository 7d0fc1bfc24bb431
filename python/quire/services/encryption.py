"""encryption.xml parsing.

Each `EncryptedData` element becomes an Encryption fact keyed by the
container path of the resource it protects. Compression declared through
the IDPF compression extension is reported as "deflate" (method 8) along
with the original length of the resource.
"""

from xml.etree import ElementTree as ET

from quire.container.paths import normalize_path, resolve_href, strip_fragment
from quire.logging import get_logger
from quire.schemas import Encryption
from quire.services.xmltree import NS, qname

logger = get_logger(__name__)

ENCRYPTION_PATH = "META-INF/encryption.xml"

LCP_SCHEME = "http://readium.org/2014/01/lcp"
_LCP_RETRIEVAL_URI = "license.lcpl#/encryption/content_key"

_COMPRESSION_METHODS = {
    "8": "deflate",
    "0": None,
}


def parse_encryption(document: ET.Element | None) -> dict[str, Encryption]:
    """Parse an encryption.xml document.

    Args:
        document: Root of META-INF/encryption.xml, or None when absent.

    Returns:
        Encryption facts keyed by container path.
    """
    if document is None:
        return {}

    facts: dict[str, Encryption] = {}
    for encrypted in document.iter(qname("enc", "EncryptedData")):
        reference = encrypted.find("enc:CipherData/enc:CipherReference", NS)
        uri = reference.get("URI", "").strip() if reference is not None else ""
        method = encrypted.find("enc:EncryptionMethod", NS)
        algorithm = method.get("Algorithm", "").strip() if method is not None else ""
        if not uri or not algorithm:
            logger.warning("encrypted_data_incomplete", uri=uri or None, algorithm=algorithm or None)
            continue

        retrieval = encrypted.find("ds:KeyInfo/ds:RetrievalMethod", NS)
        scheme = (
            LCP_SCHEME
            if retrieval is not None and retrieval.get("URI") == _LCP_RETRIEVAL_URI
            else None
        )

        compression = None
        original_length = None
        compression_el = encrypted.find(
            "enc:EncryptionProperties/enc:EncryptionProperty/comp:Compression", NS
        )
        if compression_el is not None:
            compression = _COMPRESSION_METHODS.get(compression_el.get("Method", "").strip())
            original_length = _parse_length(compression_el.get("OriginalLength"))

        href = normalize_path(strip_fragment(resolve_href("", uri)))
        facts[href] = Encryption(
            algorithm=algorithm,
            compression=compression,
            original_length=original_length,
            scheme=scheme,
        )
    return facts


def _parse_length(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        logger.warning("encryption_original_length_invalid", value=value)
        return None
