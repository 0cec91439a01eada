#!/usr/bin/env python3
import json
import tempfile
import unittest
from pathlib import Path
import sys

from PIL import Image


SCRIPT_DIR = Path(__file__).resolve().parent
if str(SCRIPT_DIR) not in sys.path:
    sys.path.insert(0, str(SCRIPT_DIR))

import geometry_converter as geo
from asset_resolver import AssetOrigin, AssetReference, ResolvedAsset
from model_document import ModelDocument


def _document(elements: list) -> ModelDocument:
    return ModelDocument.parse(json.dumps({"elements": elements}))


class GeometryConverterTests(unittest.TestCase):
    def test_full_block_maps_to_centered_cube(self) -> None:
        document = _document([{"from": [0, 0, 0], "to": [16, 16, 16]}])

        geometry, notes = geo.convert(document, {}, identifier="geometry.item_mypack_ruby")

        self.assertEqual(notes, [])
        cube = geometry.cuboids[0]
        self.assertEqual(cube.origin, (-8.0, 8.0, -8.0))
        self.assertEqual(cube.size, (16.0, 16.0, 16.0))
        self.assertIsNone(cube.rotation)
        self.assertEqual((geometry.texture_width, geometry.texture_height), (64, 64))

    def test_uv_normalization_drops_mirroring(self) -> None:
        plain = geo.normalize_uv((8.0, 0.0, 16.0, 8.0))
        mirrored = geo.normalize_uv((16.0, 0.0, 8.0, 8.0))

        self.assertEqual(plain, geo.FaceUVRect(origin=(8.0, 0.0), size=(8.0, 8.0)))
        self.assertEqual(mirrored, plain)

    def test_rotation_and_pivot_remapped(self) -> None:
        document = _document(
            [
                {
                    "from": [4, 0, 4],
                    "to": [12, 10, 12],
                    "rotation": {"angle": 45, "axis": "x", "origin": [8, 4, 8]},
                    "faces": {"up": {"uv": [0, 0, 8, 8]}, "down": {}},
                }
            ]
        )

        geometry, notes = geo.convert(document, {})

        cube = geometry.cuboids[0]
        self.assertEqual(cube.origin, (-4.0, 14.0, -4.0))
        self.assertEqual(cube.pivot, (0.0, 20.0, 0.0))
        self.assertEqual(cube.rotation, (45.0, 0.0, 0.0))
        self.assertEqual(list(cube.uv), ["up"])
        self.assertEqual(notes, [])

    def test_unknown_rotation_axis_is_noted(self) -> None:
        document = _document(
            [{"from": [0, 0, 0], "to": [1, 1, 1], "rotation": {"angle": 22.5, "axis": "w"}}]
        )

        geometry, notes = geo.convert(document, {})

        self.assertEqual(geometry.cuboids[0].rotation, (0.0, 0.0, 0.0))
        self.assertEqual(len(notes), 1)
        self.assertTrue(notes[0].startswith("unsupported_shape: element 0"))

    def test_degenerate_size_passes_through(self) -> None:
        document = _document([{"from": [0, 0, 8], "to": [16, 16, 8]}])

        geometry, _ = geo.convert(document, {})

        self.assertEqual(geometry.cuboids[0].size, (16.0, 16.0, 0.0))

    def test_empty_model_yields_note_and_no_cubes(self) -> None:
        geometry, notes = geo.convert(ModelDocument(), {})

        self.assertEqual(geometry.cuboids, [])
        self.assertEqual(len(geometry.bones), 1)
        self.assertEqual(notes, ["unsupported_shape: model has no convertible elements"])

    def test_skipped_elements_carry_their_notes(self) -> None:
        document = _document([{"from": [0, 0, 0]}, {"from": [0, 0, 0], "to": [2, 2, 2]}])

        geometry, notes = geo.convert(document, {})

        self.assertEqual(len(geometry.cuboids), 1)
        self.assertEqual(len(notes), 1)
        self.assertIn("element 0 skipped", notes[0])

    def test_texture_size_read_from_first_slot(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            texture_path = Path(temp_dir) / "ruby.png"
            Image.new("RGBA", (32, 16), (255, 0, 0, 255)).save(texture_path)
            asset = ResolvedAsset(
                reference=AssetReference("mypack", "textures/item/ruby.png"),
                location=texture_path,
                origin=AssetOrigin.LOOSE,
            )

            geometry, _ = geo.convert(_document([{"from": [0, 0, 0], "to": [1, 1, 1]}]), {"layer0": asset})

        self.assertEqual((geometry.texture_width, geometry.texture_height), (32, 16))

    def test_unreadable_texture_has_no_size(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            texture_path = Path(temp_dir) / "broken.png"
            texture_path.write_bytes(b"not an image")

            self.assertIsNone(geo.read_texture_size(texture_path))
            self.assertIsNone(geo.read_texture_size(Path(temp_dir) / "missing.png"))

    def test_to_json_layout(self) -> None:
        document = _document(
            [{"from": [0, 0, 0], "to": [16, 16, 16], "faces": {"north": {"uv": [16, 0, 0, 16]}}}]
        )

        geometry, _ = geo.convert(document, {}, identifier="geometry.item_mypack_ruby")
        payload = geometry.to_json()

        self.assertEqual(payload["format_version"], "1.12.0")
        entry = payload["minecraft:geometry"][0]
        self.assertEqual(entry["description"]["identifier"], "geometry.item_mypack_ruby")
        bone = entry["bones"][0]
        self.assertEqual(bone["name"], "root")
        self.assertEqual(bone["pivot"], [0, 24, 0])
        self.assertEqual(
            bone["cubes"][0],
            {
                "origin": [-8, 8, -8],
                "size": [16, 16, 16],
                "uv": {"north": {"uv": [0, 0], "uv_size": [16, 16]}},
            },
        )


if __name__ == "__main__":
    unittest.main()
