"""Tests for checksum computation and verification."""

from __future__ import annotations

import hashlib
from typing import TYPE_CHECKING

import pytest

from selfupdate.errors import ChecksumMismatchError
from selfupdate.integrity import CHUNK_SIZE, IntegrityVerifier

if TYPE_CHECKING:
    from pathlib import Path

CONTENT = bytes(range(256)) * 50  # spans several chunks


@pytest.fixture
def verifier() -> IntegrityVerifier:
    return IntegrityVerifier()


@pytest.fixture
def archive(tmp_path: Path) -> Path:
    path = tmp_path / "tool_linux_arm64.tar.gz"
    path.write_bytes(CONTENT)
    return path


class TestChecksum:
    """Tests for IntegrityVerifier.checksum."""

    def test_md5_over_several_chunks(self, verifier: IntegrityVerifier, archive: Path) -> None:
        assert len(CONTENT) > CHUNK_SIZE
        assert verifier.checksum(archive) == hashlib.md5(CONTENT).hexdigest()

    def test_sha256(self, verifier: IntegrityVerifier, archive: Path) -> None:
        assert verifier.checksum(archive, "sha256") == hashlib.sha256(CONTENT).hexdigest()

    def test_empty_file(self, verifier: IntegrityVerifier, tmp_path: Path) -> None:
        path = tmp_path / "empty"
        path.write_bytes(b"")
        assert verifier.checksum(path) == hashlib.md5(b"").hexdigest()

    def test_unknown_algorithm(self, verifier: IntegrityVerifier, archive: Path) -> None:
        with pytest.raises(ValueError):
            verifier.checksum(archive, "not-a-hash")

    @pytest.mark.asyncio
    async def test_checksum_async(self, verifier: IntegrityVerifier, archive: Path) -> None:
        assert await verifier.checksum_async(archive) == hashlib.md5(CONTENT).hexdigest()


class TestVerify:
    """Tests for comparing computed and published checksums."""

    def test_identical_content_verifies(self, verifier: IntegrityVerifier, archive: Path) -> None:
        published = hashlib.md5(CONTENT).hexdigest()
        assert verifier.verify(verifier.checksum(archive), published)

    def test_single_byte_mutation_fails(
        self, verifier: IntegrityVerifier, archive: Path, tmp_path: Path
    ) -> None:
        """Test flipping one byte breaks verification."""
        published = verifier.checksum(archive)
        mutated = bytearray(CONTENT)
        mutated[len(mutated) // 2] ^= 0x01
        mutated_path = tmp_path / "mutated"
        mutated_path.write_bytes(bytes(mutated))

        assert not verifier.verify(verifier.checksum(mutated_path), published)

    def test_published_value_is_trimmed(self, verifier: IntegrityVerifier) -> None:
        assert verifier.verify("abc123", "  abc123\n")

    def test_coreutils_format(self, verifier: IntegrityVerifier) -> None:
        """Test the '<hex>  <file>' line format of md5sum/sha256sum."""
        assert verifier.verify("abc123", "ABC123  tool_linux_arm64.tar.gz\n")

    def test_empty_published_value(self, verifier: IntegrityVerifier) -> None:
        assert not verifier.verify("abc123", "   ")


class TestVerifyFile:
    """Tests for verify_file."""

    @pytest.mark.asyncio
    async def test_match(self, verifier: IntegrityVerifier, archive: Path, tmp_path: Path) -> None:
        checksum_path = tmp_path / "tool.md5"
        checksum_path.write_text(hashlib.md5(CONTENT).hexdigest() + "\n")

        assert await verifier.verify_file(archive, checksum_path) == hashlib.md5(CONTENT).hexdigest()

    @pytest.mark.asyncio
    async def test_mismatch(self, verifier: IntegrityVerifier, archive: Path, tmp_path: Path) -> None:
        checksum_path = tmp_path / "tool.md5"
        checksum_path.write_text("0" * 32)

        with pytest.raises(ChecksumMismatchError) as exc_info:
            await verifier.verify_file(archive, checksum_path)

        assert exc_info.value.expected == "0" * 32
        assert exc_info.value.computed == hashlib.md5(CONTENT).hexdigest()
        assert "checksum mismatch" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_undecodable_checksum_file(
        self, verifier: IntegrityVerifier, archive: Path, tmp_path: Path
    ) -> None:
        """Test a checksum file that is not text is reported as a mismatch."""
        checksum_path = tmp_path / "tool.md5"
        checksum_path.write_bytes(b"\xff\xfe\x00garbage")

        with pytest.raises(ChecksumMismatchError):
            await verifier.verify_file(archive, checksum_path)
