#!/usr/bin/env python3
"""Write ``BuiltModel`` results into a Bedrock resource pack tree."""

from __future__ import annotations

import json
import logging
import shutil
import threading
from pathlib import Path
from typing import Dict, List

from asset_resolver import ErrorKind, format_note
from model_builder import BuiltModel, sanitize


ITEM_FORMAT_VERSION = "1.20.0"
ITEM_ATLAS_REL = Path("textures/item_texture.json")
DEFAULT_PACK_NAME = "BedrockConverter"


def normalize_atlas_path(rel: str) -> str:
    """Atlas entries use forward slashes and no ``.png`` suffix."""
    clean = rel.replace("\\", "/").lstrip("/")
    if clean.lower().endswith(".png"):
        clean = clean[: -len(".png")]
    return clean


def atlas_key(namespace: str, item_id: str) -> str:
    return f"ia_{sanitize(namespace)}_{sanitize(item_id)}"


class PackWriter:
    def __init__(self, pack_root: Path, pack_name: str = DEFAULT_PACK_NAME, dry_run: bool = False) -> None:
        self.pack_root = pack_root
        self.pack_name = pack_name
        self.dry_run = dry_run
        self._atlas_lock = threading.Lock()

    def write(self, built: BuiltModel) -> List[str]:
        """Write geometry, attachable, textures, icon and item definition.

        Returns the notes produced while writing; nothing raises.
        """
        notes: List[str] = []
        label = f"{built.namespace}:{built.item_id}"

        if self.dry_run:
            logging.info("[dry-run][pack] %s -> %s", label, built.geometry_out_rel)
            return notes

        if built.geometry is not None:
            self._write_json(built.geometry_out_rel, built.geometry.to_json(), notes)
        if built.attachable is not None:
            self._write_json(built.attachable_out_rel, built.attachable, notes)

        for source, destination_rel in built.textures_to_copy:
            self._copy(source, destination_rel, notes)

        if built.icon_path is not None:
            if self._copy(built.icon_path, built.icon_atlas_rel, notes):
                self.update_item_atlas(atlas_key(built.namespace, built.item_id), built.icon_atlas_rel, notes)

        self._write_json(
            f"items/{built.bedrock_identifier.replace(':', '_')}.json",
            self.item_definition(built),
            notes,
        )
        return notes

    def item_definition(self, built: BuiltModel) -> Dict[str, object]:
        components: Dict[str, object] = {}
        if built.icon_path is not None:
            components["minecraft:icon"] = {"texture": atlas_key(built.namespace, built.item_id)}
        return {
            "format_version": ITEM_FORMAT_VERSION,
            "minecraft:item": {
                "description": {"identifier": built.bedrock_identifier},
                "components": components,
            },
        }

    def update_item_atlas(self, key: str, icon_rel: str, notes: List[str]) -> None:
        with self._atlas_lock:
            self._update_item_atlas(key, icon_rel, notes)

    def _update_item_atlas(self, key: str, icon_rel: str, notes: List[str]) -> None:
        atlas_path = self.pack_root / ITEM_ATLAS_REL
        root: Dict[str, object] = {}
        if atlas_path.is_file():
            try:
                loaded = json.loads(atlas_path.read_text(encoding="utf-8"))
                if isinstance(loaded, dict):
                    root = loaded
            except (OSError, ValueError) as exc:
                logging.warning("Rebuilding unreadable atlas %s: %s", atlas_path, exc)
        if not root:
            root = {
                "resource_pack_name": self.pack_name,
                "texture_name": "atlas.items",
                "texture_data": {},
            }

        data = root.get("texture_data")
        if not isinstance(data, dict):
            data = {}
            root["texture_data"] = data
        data[key] = {"textures": normalize_atlas_path(icon_rel)}

        self._write_json(ITEM_ATLAS_REL.as_posix(), root, notes)
        logging.debug("Updated %s -> %s = %s", ITEM_ATLAS_REL, key, data[key])

    def _write_json(self, rel: str, payload: Dict[str, object], notes: List[str]) -> bool:
        target = self.pack_root / rel
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as exc:
            logging.error("Failed to write %s: %s", target, exc)
            notes.append(format_note(ErrorKind.IO_FAILURE, f"write {rel}: {exc}"))
            return False
        logging.debug("Wrote %s", target)
        return True

    def _copy(self, source: Path, destination_rel: str, notes: List[str]) -> bool:
        target = self.pack_root / destination_rel
        try:
            if source.resolve() == target.resolve():
                return True
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, target)
        except OSError as exc:
            logging.warning("Failed copying %s -> %s: %s", source, target, exc)
            notes.append(format_note(ErrorKind.IO_FAILURE, f"copy {source} -> {destination_rel}: {exc}"))
            return False
        return True
