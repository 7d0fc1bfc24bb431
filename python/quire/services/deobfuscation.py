"""Font deobfuscation.

Two obfuscation algorithms are recognised. Both XOR the leading bytes of a
resource with a key derived from the publication identifier:

- IDPF (http://www.idpf.org/2008/embedding): first 1040 bytes, key is the
  SHA-1 digest of the identifier.
- Adobe (http://ns.adobe.com/pdf/enc#RC): first 1024 bytes, key is the
  identifier itself, hex-decoded once `urn:uuid:` and dashes are removed.

Deobfuscation is applied on every read, full or ranged, using absolute byte
offsets, so a range starting inside the obfuscated prefix comes back
correctly decoded.
"""

from __future__ import annotations

import hashlib

from quire.container.base import Resource
from quire.errors import DecodingError
from quire.logging import get_logger
from quire.schemas import Encryption

logger = get_logger(__name__)

IDPF_ALGORITHM = "http://www.idpf.org/2008/embedding"
ADOBE_ALGORITHM = "http://ns.adobe.com/pdf/enc#RC"

OBFUSCATION_LENGTHS = {
    IDPF_ALGORITHM: 1040,
    ADOBE_ALGORITHM: 1024,
}


def derive_key(algorithm: str, identifier: str | None) -> bytes:
    """Derive the obfuscation key of an algorithm.

    Raises:
        DecodingError: If the identifier is missing or cannot produce a key.
    """
    if not identifier:
        raise DecodingError("Cannot deobfuscate without a publication identifier")

    if algorithm == IDPF_ALGORITHM:
        return hashlib.sha1(identifier.encode("utf-8")).digest()

    if algorithm == ADOBE_ALGORITHM:
        raw = identifier.replace("urn:uuid:", "").replace("-", "")
        try:
            key = bytes.fromhex(raw)
        except ValueError as exc:
            raise DecodingError(f"Invalid Adobe obfuscation key: {identifier!r}") from exc
        if not key:
            raise DecodingError(f"Invalid Adobe obfuscation key: {identifier!r}")
        return key

    raise DecodingError(f"Unsupported obfuscation algorithm: {algorithm}")


def deobfuscate(data: bytes, key: bytes, length: int, offset: int = 0) -> bytes:
    """XOR the obfuscated prefix of a byte range.

    Args:
        data: Bytes read from the resource, starting at `offset`.
        key: Obfuscation key.
        length: Size of the obfuscated prefix of the whole resource.
        offset: Absolute offset of data[0] in the resource.

    Returns:
        The range with every byte at an absolute position below `length`
        XORed with key[position % len(key)]. Applying it twice restores
        the input.
    """
    if not key:
        raise DecodingError("Empty obfuscation key")
    count = min(len(data), length - offset)
    if count <= 0:
        return data

    decoded = bytearray(data)
    key_length = len(key)
    for i in range(count):
        decoded[i] ^= key[(offset + i) % key_length]
    return bytes(decoded)


class DeobfuscatedResource(Resource):
    """Resource wrapper removing font obfuscation on read."""

    def __init__(self, resource: Resource, algorithm: str, identifier: str | None):
        super().__init__(resource.href)
        self._resource = resource
        self._algorithm = algorithm
        self._identifier = identifier
        self._obfuscation_length = OBFUSCATION_LENGTHS[algorithm]

    def length(self) -> int:
        return self._resource.length()

    def archive_entry_length(self) -> int | None:
        return self._resource.archive_entry_length()

    def read(self, start: int = 0, end: int | None = None) -> bytes:
        key = derive_key(self._algorithm, self._identifier)
        data = self._resource.read(start, end)
        return deobfuscate(data, key, self._obfuscation_length, offset=start)

    def close(self) -> None:
        self._resource.close()


class Deobfuscator:
    """Resource transformer for obfuscated fonts.

    Resources whose Encryption fact names a recognised obfuscation
    algorithm are wrapped in a DeobfuscatedResource; every other resource
    is returned untouched.

    Args:
        identifier: Publication identifier (dc:identifier).
        encryption_data: Encryption facts keyed by container path.
    """

    def __init__(self, identifier: str | None, encryption_data: dict[str, Encryption]):
        self.identifier = identifier
        self.encryption_data = encryption_data

    def __call__(self, resource: Resource) -> Resource:
        encryption = self.encryption_data.get(resource.href)
        if encryption is None or encryption.algorithm not in OBFUSCATION_LENGTHS:
            return resource
        logger.debug("resource_deobfuscated", href=resource.href, algorithm=encryption.algorithm)
        return DeobfuscatedResource(resource, encryption.algorithm, self.identifier)
