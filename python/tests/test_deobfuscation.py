"""Tests for font deobfuscation."""

import hashlib
import random

import pytest

from quire.container import BytesResource, InMemoryContainer, TransformingContainer
from quire.errors import DecodingError
from quire.schemas import Encryption
from quire.services.deobfuscation import (
    ADOBE_ALGORITHM,
    IDPF_ALGORITHM,
    Deobfuscator,
    deobfuscate,
    derive_key,
)

IDENTIFIER = "urn:uuid:7408D53A-5383-40AA-8078-5256C872AE41"
FONT = "OEBPS/fonts/font.otf"


def _font_bytes(size: int = 4096) -> bytes:
    return random.Random(7).randbytes(size)


class TestDeriveKey:
    def test_idpf_key_is_sha1_of_identifier(self):
        assert derive_key(IDPF_ALGORITHM, IDENTIFIER) == hashlib.sha1(IDENTIFIER.encode()).digest()

    def test_adobe_key_is_hex_uuid(self):
        assert derive_key(ADOBE_ALGORITHM, IDENTIFIER) == bytes.fromhex(
            "7408D53A538340AA80785256C872AE41"
        )

    @pytest.mark.parametrize(
        ("algorithm", "identifier"),
        [
            (IDPF_ALGORITHM, None),
            (IDPF_ALGORITHM, ""),
            (ADOBE_ALGORITHM, "urn:uuid:not-hex"),
            (ADOBE_ALGORITHM, "urn:uuid:"),
            ("http://example.com/unknown", IDENTIFIER),
        ],
    )
    def test_unusable_key(self, algorithm, identifier):
        with pytest.raises(DecodingError):
            derive_key(algorithm, identifier)


class TestDeobfuscate:
    def test_self_inverse(self):
        data = _font_bytes()
        key = derive_key(IDPF_ALGORITHM, IDENTIFIER)
        obfuscated = deobfuscate(data, key, 1040)
        assert obfuscated != data
        assert obfuscated[1040:] == data[1040:]
        assert deobfuscate(obfuscated, key, 1040) == data

    def test_ranged_read_uses_absolute_offsets(self):
        data = _font_bytes()
        key = derive_key(ADOBE_ALGORITHM, IDENTIFIER)
        obfuscated = deobfuscate(data, key, 1024)
        assert deobfuscate(obfuscated[1000:1100], key, 1024, offset=1000) == data[1000:1100]

    def test_range_past_prefix_untouched(self):
        key = derive_key(IDPF_ALGORITHM, IDENTIFIER)
        assert deobfuscate(b"abc", key, 1040, offset=2000) == b"abc"

    def test_empty_key_rejected(self):
        with pytest.raises(DecodingError):
            deobfuscate(b"abc", b"", 1040)


class TestDeobfuscator:
    """Resources named in encryption facts are decoded on read."""

    def _container(self, algorithm: str, identifier: str | None, data: bytes):
        inner = InMemoryContainer({FONT: data, "OEBPS/ch1.xhtml": b"<html/>"})
        transformer = Deobfuscator(identifier, {FONT: Encryption(algorithm=algorithm)})
        return TransformingContainer(inner, [transformer])

    @pytest.mark.parametrize(
        ("algorithm", "length"), [(IDPF_ALGORITHM, 1040), (ADOBE_ALGORITHM, 1024)]
    )
    def test_full_and_ranged_reads(self, algorithm, length):
        data = _font_bytes()
        obfuscated = deobfuscate(data, derive_key(algorithm, IDENTIFIER), length)
        container = self._container(algorithm, IDENTIFIER, obfuscated)

        resource = container.get(FONT)
        assert resource.read() == data
        assert resource.read(1020, 1050) == data[1020:1050]
        assert resource.length() == len(data)

    def test_other_resources_untouched(self):
        container = self._container(IDPF_ALGORITHM, IDENTIFIER, b"x")
        assert container.read("OEBPS/ch1.xhtml") == b"<html/>"

    def test_unknown_algorithm_passes_through(self):
        container = self._container("http://www.w3.org/2001/04/xmlenc#aes256-cbc", None, b"raw")
        assert container.read(FONT) == b"raw"

    def test_missing_identifier_fails_at_read(self):
        container = self._container(IDPF_ALGORITHM, None, b"raw")
        resource = container.get(FONT)
        assert resource is not None
        with pytest.raises(DecodingError):
            resource.read()

    def test_transformer_on_single_resource(self):
        resource = BytesResource("other.otf", b"raw")
        assert Deobfuscator(IDENTIFIER, {})(resource) is resource
