#!/usr/bin/env python3
"""
asset_resolver.py
=================

Resolve symbolic resource-pack references (``assets/<ns>/<path>``,
``<ns>:<path>`` or bare ``<path>``) to concrete files below a content root.

Loose directories are probed first, in the order given by
``LOOSE_PATH_TEMPLATES``. When nothing matches, the generated build archive
(``output/generated.zip``) is searched and the entry is extracted once into a
cache directory so later consumers get a real file path.

Failures are never raised: ``AssetResolver.resolve`` always returns a
``ResolveResult`` whose ``error`` tells the caller what went wrong.
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
import threading
import zipfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Dict, Iterator, Optional, Sequence, Tuple, Union


BUILTIN_NAMESPACE = "minecraft"
DEFAULT_ARCHIVE_REL = Path("output/generated.zip")
DEFAULT_CACHE_DIR_REL = Path("output/_cache_assets")

# Evaluated top to bottom, first existing file wins.
LOOSE_PATH_TEMPLATES: Tuple[str, ...] = (
    "content/{namespace}/resourcepack/assets/{namespace}/{relative_path}",
    "content/{namespace}/resourcepack/{namespace}/{relative_path}",
    "content/{namespace}/resourcepack/{relative_path}",
    "output/resourcepack/assets/{namespace}/{relative_path}",
    "output/resourcepack/{relative_path}",
)
ARCHIVE_ENTRY_TEMPLATE = "assets/{namespace}/{relative_path}"

INVALID_FILE_NAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    MALFORMED_DOCUMENT = "malformed_document"
    UNSUPPORTED_SHAPE = "unsupported_shape"
    IO_FAILURE = "io_failure"


def format_note(kind: ErrorKind, message: str) -> str:
    return f"{kind.value}: {message}"


class AssetOrigin(str, Enum):
    LOOSE = "loose"
    ARCHIVE = "archive"
    CACHE = "cache"


@dataclass(frozen=True)
class AssetReference:
    namespace: str
    relative_path: str

    @classmethod
    def parse(
        cls,
        raw: str,
        default_namespace: Optional[str] = None,
    ) -> "AssetReference":
        """Parse any of the accepted reference spellings.

        Raises ``ValueError`` when no namespace can be determined.
        """
        clean = raw.strip().replace("\\", "/").lstrip("/")
        if not clean:
            raise ValueError("empty asset reference")

        if clean.lower().startswith("assets/"):
            namespace, _, rel = clean[len("assets/"):].partition("/")
        elif ":" in clean.split("/", 1)[0]:
            namespace, _, rel = clean.partition(":")
        elif default_namespace:
            namespace, rel = default_namespace, clean
        else:
            namespace, _, rel = clean.partition("/")

        namespace = namespace.strip()
        rel = rel.strip().lstrip("/")
        if not namespace or not rel:
            raise ValueError(f"cannot determine namespace/path for reference '{raw}'")
        return cls(namespace=namespace, relative_path=normalize_relative_path(rel))

    @property
    def symbolic_path(self) -> str:
        return ARCHIVE_ENTRY_TEMPLATE.format(
            namespace=self.namespace,
            relative_path=self.relative_path,
        )

    def __str__(self) -> str:
        return self.symbolic_path


def normalize_relative_path(rel: str) -> str:
    parts = [part for part in rel.replace("\\", "/").split("/") if part and part != "."]
    normalized = "/".join(parts)
    if normalized and not PurePosixPath(normalized).suffix:
        if normalized.lower().startswith("models/"):
            normalized += ".json"
        else:
            normalized += ".png"
    return normalized


@dataclass(frozen=True)
class ResolvedAsset:
    reference: AssetReference
    location: Path
    origin: AssetOrigin


@dataclass(frozen=True)
class ResolveResult:
    asset: Optional[ResolvedAsset] = None
    best_guess: Optional[Path] = None
    error: Optional[ErrorKind] = None
    detail: str = ""

    @property
    def found(self) -> bool:
        return self.asset is not None

    def note(self) -> str:
        if self.error is None:
            return ""
        return format_note(self.error, self.detail)


def make_safe_cache_file_name(symbolic_path: str) -> str:
    name = INVALID_FILE_NAME_CHARS.sub("_", symbolic_path.replace("\\", "/"))
    suffix = PurePosixPath(symbolic_path).suffix
    if not suffix:
        name += ".bin"
    return name


class AssetCache:
    """Per-session resolution cache shared by every resolver of one conversion.

    The in-memory map is append-only; the on-disk directory holds archive
    extractions keyed by the escaped symbolic path.
    """

    def __init__(self, cache_dir: Path) -> None:
        self.cache_dir = cache_dir
        self.extraction_count = 0
        self._entries: Dict[str, ResolvedAsset] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[ResolvedAsset]:
        with self._lock:
            return self._entries.get(key)

    def remember(self, key: str, asset: ResolvedAsset) -> ResolvedAsset:
        with self._lock:
            return self._entries.setdefault(key, asset)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def cache_path_for(self, reference: AssetReference) -> Path:
        return self.cache_dir / make_safe_cache_file_name(reference.symbolic_path)

    def store_extracted(self, target: Path, payload: bytes) -> None:
        """Write *payload* atomically; identical concurrent writes are harmless."""
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".extract-", dir=target.parent)
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(payload)
            os.replace(tmp_name, target)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise
        with self._lock:
            self.extraction_count += 1


class AssetResolver:
    """Map symbolic references to files under ``content_root``."""

    def __init__(
        self,
        content_root: Path,
        cache: Optional[AssetCache] = None,
        archive_path: Optional[Path] = None,
        templates: Sequence[str] = LOOSE_PATH_TEMPLATES,
    ) -> None:
        self.content_root = content_root
        self.archive_path = archive_path if archive_path is not None else content_root / DEFAULT_ARCHIVE_REL
        self.cache = cache if cache is not None else AssetCache(content_root / DEFAULT_CACHE_DIR_REL)
        self.templates = tuple(templates)

    def candidate_paths(self, reference: AssetReference) -> Iterator[Path]:
        rel = reference.relative_path
        for template in self.templates:
            rendered = template.format(namespace=reference.namespace, relative_path=rel)
            yield self.content_root.joinpath(*rendered.split("/"))

    def resolve(
        self,
        reference: Union[str, AssetReference],
        default_namespace: Optional[str] = None,
    ) -> ResolveResult:
        if isinstance(reference, AssetReference):
            parsed = reference
        else:
            try:
                parsed = AssetReference.parse(reference, default_namespace=default_namespace)
            except ValueError as exc:
                return ResolveResult(error=ErrorKind.NOT_FOUND, detail=str(exc))

        key = parsed.symbolic_path
        cached = self.cache.get(key)
        if cached is not None:
            return ResolveResult(asset=cached)

        best_guess: Optional[Path] = None
        for candidate in self.candidate_paths(parsed):
            if best_guess is None:
                best_guess = candidate
            if _is_file(candidate):
                asset = ResolvedAsset(reference=parsed, location=candidate, origin=AssetOrigin.LOOSE)
                return ResolveResult(asset=self.cache.remember(key, asset))

        archived = self._resolve_from_archive(parsed)
        if archived.found:
            assert archived.asset is not None
            return ResolveResult(asset=self.cache.remember(key, archived.asset))
        if archived.error is ErrorKind.IO_FAILURE:
            return ResolveResult(best_guess=best_guess, error=archived.error, detail=archived.detail)

        logging.debug("Asset not found: %s (best guess %s)", parsed, best_guess)
        return ResolveResult(
            best_guess=best_guess,
            error=ErrorKind.NOT_FOUND,
            detail=f"{parsed} (looked in {best_guess})",
        )

    def _resolve_from_archive(self, reference: AssetReference) -> ResolveResult:
        cache_path = self.cache.cache_path_for(reference)
        try:
            cached_on_disk = cache_path.is_file()
        except OSError as exc:
            logging.warning("Unusable cache path for %s: %s", reference, exc)
            return ResolveResult(error=ErrorKind.IO_FAILURE, detail=f"{reference}: {exc}")
        if cached_on_disk:
            logging.debug("Using cached archive extraction %s", cache_path)
            return ResolveResult(
                asset=ResolvedAsset(reference=reference, location=cache_path, origin=AssetOrigin.CACHE)
            )

        payload = read_archive_entry(self.archive_path, reference.symbolic_path)
        if not payload:
            return ResolveResult(error=ErrorKind.NOT_FOUND)

        try:
            self.cache.store_extracted(cache_path, payload)
        except OSError as exc:
            logging.error("Failed to extract %s to %s: %s", reference, cache_path, exc)
            return ResolveResult(error=ErrorKind.IO_FAILURE, detail=f"{reference}: {exc}")

        logging.debug("Extracted %s -> %s (%d bytes)", reference, cache_path, len(payload))
        return ResolveResult(
            asset=ResolvedAsset(reference=reference, location=cache_path, origin=AssetOrigin.ARCHIVE)
        )

    def read_bytes(
        self,
        reference: Union[str, AssetReference],
        default_namespace: Optional[str] = None,
    ) -> Tuple[Optional[bytes], ResolveResult]:
        result = self.resolve(reference, default_namespace=default_namespace)
        if not result.found:
            return None, result
        assert result.asset is not None
        try:
            return result.asset.location.read_bytes(), result
        except OSError as exc:
            logging.warning("Cannot read %s: %s", result.asset.location, exc)
            return None, ResolveResult(
                best_guess=result.asset.location,
                error=ErrorKind.IO_FAILURE,
                detail=f"{result.asset.location}: {exc}",
            )

    def read_text(
        self,
        reference: Union[str, AssetReference],
        default_namespace: Optional[str] = None,
    ) -> Tuple[Optional[str], ResolveResult]:
        payload, result = self.read_bytes(reference, default_namespace=default_namespace)
        if payload is None:
            return None, result
        return payload.decode("utf-8-sig", errors="replace"), result


def read_archive_entry(archive_path: Path, entry_name: str) -> Optional[bytes]:
    """Return the bytes of *entry_name* or ``None``; the archive is closed afterwards."""
    if not archive_path.is_file():
        return None
    wanted = entry_name.replace("\\", "/")
    try:
        with zipfile.ZipFile(archive_path, "r") as archive:
            try:
                info = archive.getinfo(wanted)
            except KeyError:
                return None
            return archive.read(info)
    except (OSError, zipfile.BadZipFile) as exc:
        logging.warning("Cannot read archive %s: %s", archive_path, exc)
        return None



def _is_file(path: Path) -> bool:
    # Over-long names raise ENAMETOOLONG instead of returning False.
    try:
        return path.is_file()
    except OSError as exc:
        logging.debug("Skipping candidate %s: %s", path, exc)
        return False
