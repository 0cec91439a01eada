#!/usr/bin/env python3
"""
geometry_converter.py
=====================

Convert a parsed Java edition model into a Bedrock ``.geo.json`` document.

Coordinate conventions:

* Java elements live in a 0..16 cube, corner anchored, Y up.
* Bedrock cubes are centred on X/Z = 8 and hang from a root bone 24 units up,
  so every point maps to ``(x - 8, 24 - y, z - 8)``; for a cube origin the
  ``to`` corner supplies Y.

Known losses:

* Face UV rectangles given right-to-left or bottom-to-top mean "mirrored" in
  Java; Bedrock box UVs cannot express that, so only the min corner and the
  absolute size survive.
* Zero or negative sizes are passed through untouched (flat decals use them).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

from PIL import Image, UnidentifiedImageError

from asset_resolver import ErrorKind, ResolvedAsset, format_note
from model_document import (
    FACE_NAMES,
    ROTATION_AXES,
    Element,
    ElementRotation,
    ModelDocument,
    UVRect,
    Vec3,
)


GEOMETRY_FORMAT_VERSION = "1.12.0"
DEFAULT_TEXTURE_SIZE = (64, 64)
ROOT_BONE_NAME = "root"
ROOT_BONE_PIVOT: Vec3 = (0.0, 24.0, 0.0)
CENTER_OFFSET = 8.0
ROOT_HEIGHT = 24.0


@dataclass(frozen=True)
class FaceUVRect:
    origin: Tuple[float, float]
    size: Tuple[float, float]

    def to_json(self) -> Dict[str, List[float]]:
        return {"uv": _json_numbers(self.origin), "uv_size": _json_numbers(self.size)}


@dataclass
class TargetCuboid:
    origin: Vec3
    size: Vec3
    pivot: Optional[Vec3] = None
    rotation: Optional[Vec3] = None
    uv: Dict[str, FaceUVRect] = field(default_factory=dict)

    def to_json(self) -> Dict[str, object]:
        cube: Dict[str, object] = {
            "origin": _json_numbers(self.origin),
            "size": _json_numbers(self.size),
        }
        if self.pivot is not None:
            cube["pivot"] = _json_numbers(self.pivot)
        if self.rotation is not None:
            cube["rotation"] = _json_numbers(self.rotation)
        if self.uv:
            cube["uv"] = {face: rect.to_json() for face, rect in self.uv.items()}
        return cube


@dataclass
class TargetBone:
    name: str = ROOT_BONE_NAME
    pivot: Vec3 = ROOT_BONE_PIVOT
    cuboids: List[TargetCuboid] = field(default_factory=list)

    def to_json(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "pivot": _json_numbers(self.pivot),
            "cubes": [cuboid.to_json() for cuboid in self.cuboids],
        }


@dataclass
class TargetGeometryDocument:
    identifier: str
    texture_width: int = DEFAULT_TEXTURE_SIZE[0]
    texture_height: int = DEFAULT_TEXTURE_SIZE[1]
    bones: List[TargetBone] = field(default_factory=lambda: [TargetBone()])

    @property
    def cuboids(self) -> List[TargetCuboid]:
        return [cuboid for bone in self.bones for cuboid in bone.cuboids]

    def to_json(self) -> Dict[str, object]:
        return {
            "format_version": GEOMETRY_FORMAT_VERSION,
            "minecraft:geometry": [
                {
                    "description": {
                        "identifier": self.identifier,
                        "texture_width": self.texture_width,
                        "texture_height": self.texture_height,
                    },
                    "bones": [bone.to_json() for bone in self.bones],
                }
            ],
        }


def _json_number(value: float) -> float:
    rounded = round(float(value), 6)
    if rounded == 0:
        return 0
    return int(rounded) if rounded.is_integer() else rounded


def _json_numbers(values: Tuple[float, ...]) -> List[float]:
    return [_json_number(value) for value in values]


def remap_point(point: Vec3) -> Vec3:
    return (point[0] - CENTER_OFFSET, ROOT_HEIGHT - point[1], point[2] - CENTER_OFFSET)


def cuboid_origin(from_: Vec3, to: Vec3) -> Vec3:
    return (from_[0] - CENTER_OFFSET, ROOT_HEIGHT - to[1], from_[2] - CENTER_OFFSET)


def normalize_uv(rect: UVRect) -> FaceUVRect:
    u1, v1, u2, v2 = rect
    return FaceUVRect(origin=(min(u1, u2), min(v1, v2)), size=(abs(u2 - u1), abs(v2 - v1)))


def rotation_vector(rotation: ElementRotation) -> Optional[Vec3]:
    """Single-axis Java rotation as a Bedrock XYZ vector; ``None`` for an unknown axis."""
    if rotation.axis not in ROTATION_AXES:
        return None
    vector = [0.0, 0.0, 0.0]
    vector[ROTATION_AXES.index(rotation.axis)] = rotation.angle
    return (vector[0], vector[1], vector[2])


def convert_element(element: Element, index: int, notes: List[str]) -> TargetCuboid:
    size = (
        element.to[0] - element.from_[0],
        element.to[1] - element.from_[1],
        element.to[2] - element.from_[2],
    )
    cuboid = TargetCuboid(origin=cuboid_origin(element.from_, element.to), size=size)

    if element.rotation is not None:
        vector = rotation_vector(element.rotation)
        if vector is None:
            notes.append(
                format_note(
                    ErrorKind.UNSUPPORTED_SHAPE,
                    f"element {index}: unknown rotation axis '{element.rotation.axis}', rotation dropped",
                )
            )
            vector = (0.0, 0.0, 0.0)
        cuboid.rotation = vector
        if element.rotation.origin is not None:
            cuboid.pivot = remap_point(element.rotation.origin)

    for face_name in FACE_NAMES:
        face = element.faces.get(face_name)
        if face is None or face.uv is None:
            continue
        cuboid.uv[face_name] = normalize_uv(face.uv)

    return cuboid


def read_texture_size(path: Path) -> Optional[Tuple[int, int]]:
    """Pixel size from the image header; the pixel data is not decoded."""
    try:
        with Image.open(path) as image:
            width, height = image.size
    except (OSError, UnidentifiedImageError) as exc:
        logging.debug("Cannot read texture size of %s: %s", path, exc)
        return None
    if width <= 0 or height <= 0:
        return None
    return width, height


def texture_canvas_size(slot_map: Mapping[str, ResolvedAsset]) -> Tuple[int, int]:
    for asset in slot_map.values():
        size = read_texture_size(asset.location)
        if size is not None:
            return size
    return DEFAULT_TEXTURE_SIZE


def convert(
    document: ModelDocument,
    slot_map: Mapping[str, ResolvedAsset],
    identifier: str = "geometry.unknown",
) -> Tuple[TargetGeometryDocument, List[str]]:
    """Convert every usable element into one root bone; never raises."""
    notes: List[str] = list(document.element_notes)
    bone = TargetBone()

    for index, element in enumerate(document.elements):
        bone.cuboids.append(convert_element(element, index, notes))

    if not bone.cuboids:
        notes.append(format_note(ErrorKind.UNSUPPORTED_SHAPE, "model has no convertible elements"))

    width, height = texture_canvas_size(slot_map)
    geometry = TargetGeometryDocument(
        identifier=identifier,
        texture_width=width,
        texture_height=height,
        bones=[bone],
    )
    logging.debug(
        "Converted %s: %d cubes, texture %dx%d, %d notes",
        identifier,
        len(bone.cuboids),
        width,
        height,
        len(notes),
    )
    return geometry, notes
