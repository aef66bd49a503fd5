"""
Content scanning for staged uploads.

Scans run against bytes already written to the staging directory, so the
scanner sees exactly what will be promoted into storage. Sub-checks run
cheapest first and stop at the first failure:

    extension re-check -> magic bytes -> content heuristics -> hash blacklist

Any error inside the scanner itself yields an unsafe verdict (fail closed).
"""

from __future__ import annotations

import hashlib
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Protocol

from formbuilder.core.config import settings
from formbuilder.db.enums import ScanType
from formbuilder.services.file_validation import BLOCKED_EXTENSIONS, get_extension

logger = logging.getLogger(__name__)


CONTENT_SAMPLE_BYTES = 10_000
SIGNATURE_SAMPLE_BYTES = 8

# Known leading byte sequences, by file format
FILE_SIGNATURES: dict[str, bytes] = {
    "jpeg": bytes.fromhex("FFD8FF"),
    "png": bytes.fromhex("89504E47"),
    "gif": bytes.fromhex("47494638"),
    "pdf": bytes.fromhex("25504446"),
    "zip": bytes.fromhex("504B0304"),
}

# Extensions whose content must start with a known signature
EXTENSION_SIGNATURES: dict[str, tuple[bytes, ...]] = {
    "jpg": (FILE_SIGNATURES["jpeg"],),
    "jpeg": (FILE_SIGNATURES["jpeg"],),
    "png": (FILE_SIGNATURES["png"],),
    "gif": (FILE_SIGNATURES["gif"],),
    "pdf": (FILE_SIGNATURES["pdf"],),
    "docx": (FILE_SIGNATURES["zip"],),
    "xlsx": (FILE_SIGNATURES["zip"],),
    "pptx": (FILE_SIGNATURES["zip"],),
    "zip": (FILE_SIGNATURES["zip"],),
}

SUSPICIOUS_PATTERNS: tuple[re.Pattern[str], ...] = (
    # Scripts
    re.compile(r"<script.*?>.*?</script>", re.IGNORECASE),
    re.compile(r"eval\s*\(", re.IGNORECASE),
    re.compile(r"document\.write\s*\(", re.IGNORECASE),
    re.compile(r"fromCharCode", re.IGNORECASE),
    # Command execution
    re.compile(r"exec\s*\(", re.IGNORECASE),
    re.compile(r"spawn\s*\(", re.IGNORECASE),
    re.compile(r"system\s*\(", re.IGNORECASE),
    # PHP code in non-PHP files
    re.compile(r"<\?php", re.IGNORECASE),
    # DOS MZ header, base64-encoded
    re.compile(r"TVqQAAMAAAA", re.IGNORECASE),
    # Shellcode-style hex escape runs
    re.compile(r"\\x[0-9a-f]{2}\\x[0-9a-f]{2}\\x[0-9a-f]{2}\\x[0-9a-f]{2}", re.IGNORECASE),
)


class HashLookup(Protocol):
    """Known-malware lookup keyed by hex MD5 digest."""

    def lookup(self, file_hash: str) -> bool: ...


class InMemoryHashDatabase:
    """Hash blacklist held in memory; True marks a digest as malicious."""

    def __init__(self, hashes: dict[str, bool] | None = None):
        self._hashes: dict[str, bool] = {}
        if hashes:
            self.update(hashes)

    def update(self, new_hashes: dict[str, bool]) -> None:
        for file_hash, is_malicious in new_hashes.items():
            self._hashes[file_hash.strip().lower()] = bool(is_malicious)

    def lookup(self, file_hash: str) -> bool:
        return self._hashes.get(file_hash.lower(), False)

    def __len__(self) -> int:
        return len(self._hashes)

    @classmethod
    def from_file(cls, path: str) -> "InMemoryHashDatabase":
        """Load one hex digest per line; blank lines and # comments are skipped."""
        hashes: dict[str, bool] = {}
        with open(path, encoding="utf-8") as handle:
            for line in handle:
                entry = line.split("#", 1)[0].strip()
                if entry:
                    hashes[entry] = True
        return cls(hashes)


@dataclass(frozen=True)
class ScanResult:
    safe: bool
    threat_type: str | None = None
    message: str | None = None


@dataclass(frozen=True)
class _CheckResult:
    safe: bool
    message: str | None = None


DEFAULT_SCAN_TYPES = (
    ScanType.EXTENSION_VALIDATION,
    ScanType.MAGIC_BYTES,
    ScanType.CONTENT_ANALYSIS,
)


@dataclass
class FileScanner:
    """Configured scanner; the hash lookup is injected by whoever builds it."""

    enabled: bool = True
    scan_types: tuple[ScanType, ...] = DEFAULT_SCAN_TYPES
    hash_lookup: HashLookup | None = field(default=None)

    def scan_file(self, file_path: str) -> ScanResult:
        if not self.enabled:
            return ScanResult(safe=True, message="File scanning is disabled")

        try:
            return self._scan(file_path)
        except Exception:
            logger.exception("File scan failed for %s", os.path.basename(file_path))
            return ScanResult(
                safe=False,
                threat_type="Scan failure",
                message="Unable to complete security scan",
            )

    def _scan(self, file_path: str) -> ScanResult:
        ext = get_extension(os.path.basename(file_path))

        if ScanType.EXTENSION_VALIDATION in self.scan_types:
            result = _check_extension(ext)
            if not result.safe:
                return ScanResult(
                    safe=False,
                    threat_type="Potentially dangerous file type",
                    message=result.message,
                )

        with open(file_path, "rb") as handle:
            sample = handle.read(CONTENT_SAMPLE_BYTES)

        if ScanType.MAGIC_BYTES in self.scan_types:
            result = _check_signature(sample, ext)
            if not result.safe:
                return ScanResult(
                    safe=False,
                    threat_type="File signature mismatch",
                    message=result.message,
                )

        if ScanType.CONTENT_ANALYSIS in self.scan_types:
            result = _check_content(sample)
            if not result.safe:
                return ScanResult(
                    safe=False,
                    threat_type="Suspicious content detected",
                    message=result.message,
                )

        if ScanType.HASH_VERIFICATION in self.scan_types and self.hash_lookup is not None:
            result = _check_hash(file_path, self.hash_lookup)
            if not result.safe:
                return ScanResult(
                    safe=False,
                    threat_type="Known malware signature",
                    message=result.message,
                )

        return ScanResult(safe=True, message="All security scans passed")


def _check_extension(ext: str) -> _CheckResult:
    if ext in BLOCKED_EXTENSIONS:
        return _CheckResult(
            safe=False,
            message=f"File extension .{ext} is not allowed for security reasons",
        )
    return _CheckResult(safe=True)


def _check_signature(sample: bytes, ext: str) -> _CheckResult:
    if len(sample) < SIGNATURE_SAMPLE_BYTES:
        return _CheckResult(safe=False, message="File is too small to determine signature")

    expected = EXTENSION_SIGNATURES.get(ext)
    if expected and not sample.startswith(expected):
        return _CheckResult(
            safe=False,
            message=f"File signature mismatch: content doesn't match .{ext} extension",
        )
    return _CheckResult(safe=True)


def _check_content(sample: bytes) -> _CheckResult:
    text = sample.decode("utf-8", errors="replace")
    for pattern in SUSPICIOUS_PATTERNS:
        if pattern.search(text):
            return _CheckResult(
                safe=False,
                message="Suspicious content detected: file contains suspicious code patterns",
            )
    return _CheckResult(safe=True)


def _check_hash(file_path: str, hash_lookup: HashLookup) -> _CheckResult:
    md5 = hashlib.md5(usedforsecurity=False)
    with open(file_path, "rb") as handle:
        for chunk in iter(lambda: handle.read(8192), b""):
            md5.update(chunk)
    if hash_lookup.lookup(md5.hexdigest()):
        return _CheckResult(
            safe=False,
            message="File matches a known malware signature",
        )
    return _CheckResult(safe=True)


def build_file_scanner() -> FileScanner:
    """Build the scanner from settings, loading the hash blacklist when configured."""
    scan_types = DEFAULT_SCAN_TYPES
    hash_lookup: HashLookup | None = None
    if settings.MALWARE_HASHES_PATH:
        hash_lookup = InMemoryHashDatabase.from_file(settings.MALWARE_HASHES_PATH)
        scan_types = DEFAULT_SCAN_TYPES + (ScanType.HASH_VERIFICATION,)
        logger.info("Loaded %d known-malware hashes", len(hash_lookup))
    return FileScanner(
        enabled=settings.ENABLE_FILE_SCANNING,
        scan_types=scan_types,
        hash_lookup=hash_lookup,
    )
