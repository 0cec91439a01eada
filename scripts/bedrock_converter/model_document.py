#!/usr/bin/env python3
"""
model_document.py
=================

Typed view over Java edition block/item model JSON.

JSON is loaded into ``DocNode`` values (scalar, sequence or mapping) whose
accessors return ``None`` instead of raising when the shape is unexpected.
``ModelDocument.from_node`` turns the tree into ``Element`` records; elements
that cannot be used are skipped and described in ``element_notes``.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple

from asset_resolver import ErrorKind, format_note


FACE_NAMES: Tuple[str, ...] = ("north", "south", "east", "west", "up", "down")
ROTATION_AXES: Tuple[str, ...] = ("x", "y", "z")

Vec3 = Tuple[float, float, float]
UVRect = Tuple[float, float, float, float]


class MalformedDocumentError(Exception):
    pass


class UnsupportedShapeError(Exception):
    pass


class NodeKind(Enum):
    SCALAR = "scalar"
    SEQUENCE = "sequence"
    MAPPING = "mapping"


@dataclass(frozen=True)
class DocNode:
    kind: NodeKind
    value: object

    @classmethod
    def from_json(cls, raw: object) -> "DocNode":
        if isinstance(raw, dict):
            return cls(NodeKind.MAPPING, {str(k): cls.from_json(v) for k, v in raw.items()})
        if isinstance(raw, list):
            return cls(NodeKind.SEQUENCE, [cls.from_json(v) for v in raw])
        return cls(NodeKind.SCALAR, raw)

    @classmethod
    def parse(cls, text: str) -> "DocNode":
        try:
            return cls.from_json(json.loads(text))
        except ValueError as exc:
            raise MalformedDocumentError(f"invalid JSON: {exc}") from exc
        except RecursionError as exc:
            raise MalformedDocumentError("document nested too deeply") from exc

    def get(self, key: str) -> Optional["DocNode"]:
        if self.kind is not NodeKind.MAPPING:
            return None
        assert isinstance(self.value, dict)
        return self.value.get(key)

    def items(self) -> Iterator[Tuple[str, "DocNode"]]:
        if self.kind is NodeKind.MAPPING:
            assert isinstance(self.value, dict)
            yield from self.value.items()

    def children(self) -> List["DocNode"]:
        if self.kind is NodeKind.SEQUENCE:
            assert isinstance(self.value, list)
            return list(self.value)
        return []

    def as_str(self) -> Optional[str]:
        if self.kind is NodeKind.SCALAR and isinstance(self.value, str):
            return self.value
        return None

    def as_float(self) -> Optional[float]:
        if self.kind is not NodeKind.SCALAR or isinstance(self.value, bool):
            return None
        if isinstance(self.value, (int, float)):
            number = float(self.value)
            return number if math.isfinite(number) else None
        return None

    def as_floats(self, length: int) -> Optional[Tuple[float, ...]]:
        items = self.children()
        if self.kind is not NodeKind.SEQUENCE or len(items) != length:
            return None
        values = [item.as_float() for item in items]
        if any(value is None for value in values):
            return None
        return tuple(value for value in values if value is not None)

    def get_str(self, key: str) -> Optional[str]:
        node = self.get(key)
        return node.as_str() if node is not None else None


@dataclass(frozen=True)
class ElementRotation:
    axis: str
    angle: float
    origin: Optional[Vec3] = None


@dataclass(frozen=True)
class FaceUV:
    uv: Optional[UVRect] = None
    texture: Optional[str] = None


@dataclass(frozen=True)
class Element:
    from_: Vec3
    to: Vec3
    rotation: Optional[ElementRotation] = None
    faces: Dict[str, FaceUV] = field(default_factory=dict)


@dataclass
class ModelDocument:
    elements: List[Element] = field(default_factory=list)
    textures: Dict[str, str] = field(default_factory=dict)
    parent: Optional[str] = None
    element_notes: List[str] = field(default_factory=list)

    @classmethod
    def parse(cls, text: str) -> "ModelDocument":
        return cls.from_node(DocNode.parse(text))

    @classmethod
    def from_node(cls, root: DocNode) -> "ModelDocument":
        if root.kind is not NodeKind.MAPPING:
            raise MalformedDocumentError(f"model root must be an object, got {root.kind.value}")

        document = cls(parent=_clean_optional(root.get_str("parent")))

        textures = root.get("textures")
        if textures is not None:
            for slot, value in textures.items():
                text = value.as_str()
                if text is None:
                    continue
                # Slot names are case-insensitive, first spelling wins.
                document.textures.setdefault(slot.lower(), text.strip())

        elements = root.get("elements")
        for index, node in enumerate(elements.children() if elements is not None else []):
            try:
                document.elements.append(parse_element(node))
            except UnsupportedShapeError as exc:
                document.element_notes.append(
                    format_note(ErrorKind.UNSUPPORTED_SHAPE, f"element {index} skipped: {exc}")
                )
        return document


def _clean_optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def parse_element(node: DocNode) -> Element:
    if node.kind is not NodeKind.MAPPING:
        raise UnsupportedShapeError(f"expected object, got {node.kind.value}")

    from_node = node.get("from")
    to_node = node.get("to")
    if from_node is None or to_node is None:
        raise UnsupportedShapeError("missing 'from'/'to'")
    from_ = from_node.as_floats(3)
    to = to_node.as_floats(3)
    if from_ is None or to is None:
        raise UnsupportedShapeError("'from'/'to' must be three numbers")

    return Element(
        from_=(from_[0], from_[1], from_[2]),
        to=(to[0], to[1], to[2]),
        rotation=_parse_rotation(node.get("rotation")),
        faces=_parse_faces(node.get("faces")),
    )


def _parse_rotation(node: Optional[DocNode]) -> Optional[ElementRotation]:
    if node is None or node.kind is not NodeKind.MAPPING:
        return None
    angle_node = node.get("angle")
    angle = angle_node.as_float() if angle_node is not None else None
    axis = (node.get_str("axis") or "y").strip().lower()
    origin_node = node.get("origin")
    origin = origin_node.as_floats(3) if origin_node is not None else None
    return ElementRotation(
        axis=axis,
        angle=angle if angle is not None else 0.0,
        origin=(origin[0], origin[1], origin[2]) if origin is not None else None,
    )


def _parse_faces(node: Optional[DocNode]) -> Dict[str, FaceUV]:
    faces: Dict[str, FaceUV] = {}
    if node is None:
        return faces
    for name, face in node.items():
        if name not in FACE_NAMES or face.kind is not NodeKind.MAPPING:
            continue
        uv_node = face.get("uv")
        uv = uv_node.as_floats(4) if uv_node is not None else None
        faces[name] = FaceUV(
            uv=(uv[0], uv[1], uv[2], uv[3]) if uv is not None else None,
            texture=face.get_str("texture"),
        )
    return faces
