#!/usr/bin/env python3
"""
model_builder.py
================

Turn one custom item/block/furniture/helmet definition into everything the
Bedrock pack needs for a 3D visual:

* the ``.geo.json`` geometry (single root bone),
* an attachable descriptor binding the item identifier to the geometry and to
  the texture slots,
* a copy plan ``(source texture, pack-relative destination)``,
* an icon (provided file, rendered snapshot, or nothing) and diagnostic notes.

``ModelBuilder.build`` never raises; every problem ends up in ``notes``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from asset_resolver import (
    DEFAULT_CACHE_DIR_REL,
    AssetCache,
    AssetResolver,
    ErrorKind,
    ResolvedAsset,
    format_note,
)
from geometry_converter import TargetGeometryDocument, convert
from icon_renderer import IconRenderer
from texture_slots import DEFAULT_MAX_DEPTH, TextureSlotResolver


ATTACHABLE_FORMAT_VERSION = "1.10.0"
ATTACHABLE_MATERIAL = "entity_alphatest"
ATTACHABLE_RENDER_CONTROLLER = "controller.render.item_default"
MISSING_TEXTURE_REL = "textures/items/unknown"
DEFAULT_ICON_WORK_DIR = "_icons"

NON_IDENTIFIER_CHARS = re.compile(r"[^a-z0-9_]")


class ModelKind(str, Enum):
    ITEM = "item"
    BLOCK = "block"
    FURNITURE = "furniture"
    HELMET = "helmet"


def sanitize(value: Optional[str]) -> str:
    if value is None or not value.strip():
        return "unknown"
    return NON_IDENTIFIER_CHARS.sub("_", value.strip().lower())


def make_bedrock_id(namespace: str, item_id: str) -> str:
    return f"ia:{sanitize(namespace)}_{sanitize(item_id)}"


def make_geometry_id(namespace: str, item_id: str) -> str:
    # One naming scheme for every kind of handheld/worn visual.
    return f"geometry.item_{sanitize(namespace)}_{sanitize(item_id)}"


def make_geometry_rel(namespace: str, item_id: str) -> str:
    return f"models/entity/{sanitize(namespace)}_{sanitize(item_id)}.geo.json"


def make_attachable_rel(namespace: str, item_id: str) -> str:
    return f"attachables/{sanitize(namespace)}_{sanitize(item_id)}.json"


def make_model_texture_rel(namespace: str, texture_rel: str) -> str:
    return f"textures/models/{sanitize(namespace)}/{texture_rel}"


def make_icon_rel(namespace: str, item_id: str) -> str:
    return f"textures/items/{sanitize(namespace)}/{sanitize(item_id)}.png"


class ConversionSession:
    """State shared by every conversion of one run: content root and asset cache."""

    def __init__(
        self,
        content_root: Path,
        work_root: Optional[Path] = None,
        archive_path: Optional[Path] = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self.content_root = content_root
        self.work_root = work_root if work_root is not None else content_root / "output"
        self.cache = AssetCache(content_root / DEFAULT_CACHE_DIR_REL)
        self.resolver = AssetResolver(content_root, cache=self.cache, archive_path=archive_path)
        self.slots = TextureSlotResolver(self.resolver)
        self.max_depth = max_depth

    @property
    def icon_dir(self) -> Path:
        return self.work_root / DEFAULT_ICON_WORK_DIR


@dataclass
class BuiltModel:
    kind: ModelKind
    namespace: str
    item_id: str
    model_name: str = ""
    bedrock_identifier: str = ""
    geometry_identifier: str = ""
    geometry: Optional[TargetGeometryDocument] = None
    geometry_out_rel: str = ""
    attachable: Optional[Dict[str, object]] = None
    attachable_out_rel: str = ""
    textures_to_copy: List[Tuple[Path, str]] = field(default_factory=list)
    texture_slots: Dict[str, ResolvedAsset] = field(default_factory=dict)
    model_path: Optional[Path] = None
    icon_path: Optional[Path] = None
    icon_atlas_rel: str = ""
    notes: List[str] = field(default_factory=list)

    @property
    def has_geometry(self) -> bool:
        return self.geometry is not None and bool(self.geometry.cuboids)


def build_attachable(
    bedrock_identifier: str,
    geometry_identifier: str,
    texture_slots_rel: Dict[str, str],
) -> Dict[str, object]:
    textures = {slot: rel.replace("\\", "/") for slot, rel in texture_slots_rel.items()}
    if not textures:
        textures = {"default": MISSING_TEXTURE_REL}
    return {
        "format_version": ATTACHABLE_FORMAT_VERSION,
        "minecraft:attachable": {
            "description": {
                "identifier": bedrock_identifier,
                "materials": {"default": ATTACHABLE_MATERIAL},
                "textures": textures,
                "geometry": {"default": geometry_identifier},
                "render_controllers": [ATTACHABLE_RENDER_CONTROLLER],
            }
        },
    }


def pack_texture_rel(namespace: str, asset: ResolvedAsset) -> str:
    # Keep the folder below textures/ so item/stone and block/stone stay apart.
    rel = asset.reference.relative_path
    if rel.lower().startswith("textures/"):
        rel = rel[len("textures/"):]
    return make_model_texture_rel(namespace, rel)


class ModelBuilder:
    def __init__(self, session: ConversionSession) -> None:
        self.session = session

    def build(
        self,
        kind: ModelKind,
        namespace: str,
        item_id: str,
        model_name: str,
        provided_icon: Optional[Path] = None,
        icon_renderer: Optional[IconRenderer] = None,
    ) -> BuiltModel:
        built = BuiltModel(
            kind=kind,
            namespace=namespace,
            item_id=item_id,
            model_name=model_name,
            bedrock_identifier=make_bedrock_id(namespace, item_id),
            geometry_identifier=make_geometry_id(namespace, item_id),
            geometry_out_rel=make_geometry_rel(namespace, item_id),
            attachable_out_rel=make_attachable_rel(namespace, item_id),
            icon_atlas_rel=make_icon_rel(namespace, item_id),
        )

        if not model_name or not model_name.strip():
            built.notes.append(format_note(ErrorKind.NOT_FOUND, f"{kind.value} {namespace}:{item_id} has no model"))
            return built

        document, model_asset, load_notes = self.session.slots.load_model(namespace, model_name)
        built.notes.extend(load_notes)
        if document is None or model_asset is None:
            logging.warning("%s:%s model %s could not be loaded", namespace, item_id, model_name)
            return built
        built.model_path = model_asset.location

        wanted = self.session.slots.collect_texture_values(namespace, model_name, self.session.max_depth)
        built.texture_slots = self.session.slots.resolve_texture_values(wanted, label=f"{namespace}:{item_id}")
        for slot, path in wanted.items():
            if slot not in built.texture_slots:
                built.notes.append(format_note(ErrorKind.NOT_FOUND, f"texture {slot} -> {path}"))

        geometry, convert_notes = convert(document, built.texture_slots, identifier=built.geometry_identifier)
        built.geometry = geometry
        built.notes.extend(convert_notes)

        texture_slots_rel: Dict[str, str] = {}
        for slot, asset in built.texture_slots.items():
            destination = pack_texture_rel(namespace, asset)
            texture_slots_rel[slot] = str(Path(destination).with_suffix("").as_posix())
            planned = (asset.location, destination)
            if planned not in built.textures_to_copy:
                built.textures_to_copy.append(planned)

        built.attachable = build_attachable(
            built.bedrock_identifier,
            built.geometry_identifier,
            texture_slots_rel,
        )

        self._assign_icon(built, provided_icon, icon_renderer)
        logging.info(
            "%s:%s built %s (%d cubes, %d textures, %d notes)",
            namespace,
            item_id,
            kind.value,
            len(geometry.cuboids),
            len(built.texture_slots),
            len(built.notes),
        )
        return built

    def _assign_icon(
        self,
        built: BuiltModel,
        provided_icon: Optional[Path],
        icon_renderer: Optional[IconRenderer],
    ) -> None:
        if provided_icon is not None and provided_icon.is_file():
            built.icon_path = provided_icon
            return

        if icon_renderer is None or not built.texture_slots or built.model_path is None:
            built.notes.append("No icon provided and no renderer available.")
            return

        icon_path = self.session.icon_dir / f"{sanitize(built.namespace)}_{sanitize(built.item_id)}.png"
        slot_paths = {slot: asset.location for slot, asset in built.texture_slots.items()}
        try:
            rendered = icon_renderer.render_icon(built.model_path, slot_paths, icon_path)
        except Exception as exc:  # noqa: BLE001
            logging.warning("Icon renderer crashed for %s:%s: %s", built.namespace, built.item_id, exc)
            rendered = False
        if rendered and icon_path.is_file():
            built.icon_path = icon_path
        else:
            built.notes.append("Icon renderer failed or returned no file.")
