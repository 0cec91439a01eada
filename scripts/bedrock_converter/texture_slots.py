#!/usr/bin/env python3
"""
texture_slots.py
================

Build the merged texture slot map of a model by walking its parent chain.

The most-derived model writes first and is never overwritten by an ancestor.
``#alias`` values are collapsed inside each model's own texture table before
merging. The walk is bounded by ``max_depth`` so cyclic chains terminate.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from asset_resolver import (
    BUILTIN_NAMESPACE,
    AssetReference,
    AssetResolver,
    ErrorKind,
    ResolvedAsset,
    format_note,
)
from model_document import MalformedDocumentError, ModelDocument


DEFAULT_MAX_DEPTH = 8
MAX_ALIAS_HOPS = 16
RESERVED_SLOTS = frozenset({"particle"})
BUILTIN_PARENT_PREFIXES = ("item/", "block/")

# Folders probed for a bare model name, in order.
MODEL_LOOKUP_DIRS: Tuple[str, ...] = ("models/", "models/item/", "models/block/")


def collapse_aliases(textures: Dict[str, str], max_hops: int = MAX_ALIAS_HOPS) -> Dict[str, str]:
    """Follow ``#slot`` indirections inside one texture table.

    A missing target or a cycle stops at the last value reached.
    """
    lowered = {slot.lower(): value for slot, value in textures.items()}
    collapsed: Dict[str, str] = {}
    for slot, value in lowered.items():
        current = value
        hops = 0
        while current.startswith("#") and hops < max_hops:
            following = lowered.get(current[1:].lower())
            if not following:
                break
            current = following
            hops += 1
        collapsed[slot] = current
    return collapsed


def parent_reference(parent: str, current_namespace: str) -> Tuple[str, str]:
    """Return ``(namespace, model_name)`` for a model's ``parent`` value."""
    raw = parent.strip().replace("\\", "/")
    if ":" in raw:
        namespace, _, name = raw.partition(":")
        return namespace, name
    if raw.lower().startswith(BUILTIN_PARENT_PREFIXES):
        return BUILTIN_NAMESPACE, raw
    return current_namespace, raw


def canonical_texture_path(value: str) -> str:
    """Normalise a literal texture value to ``assets/<ns>/textures/<path>.png``.

    Returns an empty string for blank values and unresolved aliases.
    """
    raw = value.strip().replace("\\", "/")
    if not raw or raw.startswith("#"):
        return ""

    namespace = BUILTIN_NAMESPACE
    if ":" in raw:
        namespace, _, raw = raw.partition(":")
    raw = raw.lstrip("/")
    if not raw:
        return ""
    if not raw.lower().startswith("textures/"):
        raw = "textures/" + raw
    if not raw.lower().endswith(".png"):
        raw += ".png"
    return f"assets/{namespace}/{raw}"


def model_name_candidates(model_name: str) -> List[str]:
    name = model_name.strip().replace("\\", "/").lstrip("/")
    if name.lower().endswith(".json"):
        name = name[: -len(".json")]
    if name.lower().startswith("models/"):
        return [f"{name}.json"]
    return [f"{folder}{name}.json" for folder in MODEL_LOOKUP_DIRS]


class TextureSlotResolver:
    def __init__(self, resolver: AssetResolver) -> None:
        self.resolver = resolver

    def load_model(
        self,
        namespace: str,
        model_name: str,
    ) -> Tuple[Optional[ModelDocument], Optional[ResolvedAsset], List[str]]:
        """Locate and parse a model; never raises."""
        notes: List[str] = []
        if not namespace or not model_name or not model_name.strip():
            notes.append(format_note(ErrorKind.NOT_FOUND, f"empty model reference '{namespace}:{model_name}'"))
            return None, None, notes

        for candidate in model_name_candidates(model_name):
            reference = AssetReference(namespace=namespace, relative_path=candidate)
            text, result = self.resolver.read_text(reference)
            if text is None:
                if result.error is ErrorKind.IO_FAILURE:
                    notes.append(result.note())
                continue
            try:
                document = ModelDocument.parse(text)
            except MalformedDocumentError as exc:
                logging.warning("Malformed model %s: %s", reference, exc)
                notes.append(format_note(ErrorKind.MALFORMED_DOCUMENT, f"{reference}: {exc}"))
                continue
            return document, result.asset, notes

        notes.append(format_note(ErrorKind.NOT_FOUND, f"model {namespace}:{model_name}"))
        return None, None, notes

    def collect_texture_values(
        self,
        namespace: str,
        model_name: str,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> Dict[str, str]:
        """Merged slot -> canonical texture path, before file resolution."""
        merged: Dict[str, str] = {}
        self._collect(namespace, model_name, max_depth, merged)

        normalized: Dict[str, str] = {}
        # Aliases left open by a child may point at a slot an ancestor filled.
        for slot, value in collapse_aliases(merged).items():
            if slot in RESERVED_SLOTS:
                continue
            path = canonical_texture_path(value)
            if path:
                normalized[slot] = path
        return normalized

    def _collect(
        self,
        namespace: str,
        model_name: str,
        remaining: int,
        merged: Dict[str, str],
    ) -> None:
        if remaining <= 0:
            logging.debug("Parent chain depth limit reached at %s:%s", namespace, model_name)
            return

        document, _, _ = self.load_model(namespace, model_name)
        if document is None:
            return

        for slot, value in collapse_aliases(document.textures).items():
            merged.setdefault(slot, value)

        if not document.parent:
            return
        parent_ns, parent_name = parent_reference(document.parent, namespace)
        self._collect(parent_ns, parent_name, remaining - 1, merged)

    def resolve_slots(
        self,
        namespace: str,
        model_name: str,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> Dict[str, ResolvedAsset]:
        values = self.collect_texture_values(namespace, model_name, max_depth)
        return self.resolve_texture_values(values, label=f"{namespace}:{model_name}")

    def resolve_texture_values(self, values: Dict[str, str], label: str = "") -> Dict[str, ResolvedAsset]:
        slots: Dict[str, ResolvedAsset] = {}
        for slot, path in values.items():
            result = self.resolver.resolve(path)
            if result.asset is None:
                logging.warning(
                    "%s texture slot '%s' unresolved: %s (best guess %s)",
                    label,
                    slot,
                    path,
                    result.best_guess,
                )
                continue
            slots[slot] = result.asset
        return slots
