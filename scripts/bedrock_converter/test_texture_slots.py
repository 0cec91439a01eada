#!/usr/bin/env python3
import json
import tempfile
import unittest
from pathlib import Path
import sys


SCRIPT_DIR = Path(__file__).resolve().parent
if str(SCRIPT_DIR) not in sys.path:
    sys.path.insert(0, str(SCRIPT_DIR))

import texture_slots
from asset_resolver import AssetResolver
from texture_slots import TextureSlotResolver


def _pack_dir(root: Path, namespace: str) -> Path:
    return root / "content" / namespace / "resourcepack" / "assets" / namespace


def _write_model(root: Path, namespace: str, name: str, payload: dict) -> None:
    path = _pack_dir(root, namespace) / "models" / f"{name}.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload), encoding="utf-8")


def _write_texture(root: Path, namespace: str, name: str) -> Path:
    path = _pack_dir(root, namespace) / "textures" / f"{name}.png"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"png")
    return path


class HelperTests(unittest.TestCase):
    def test_collapse_aliases_follows_chain(self) -> None:
        collapsed = texture_slots.collapse_aliases({"a": "#b", "B": "#c", "c": "ns:item/x"})
        self.assertEqual(collapsed, {"a": "ns:item/x", "b": "ns:item/x", "c": "ns:item/x"})

    def test_collapse_aliases_stops_on_cycle_and_missing_target(self) -> None:
        collapsed = texture_slots.collapse_aliases({"a": "#b", "b": "#a", "c": "#nowhere"})
        self.assertTrue(collapsed["a"].startswith("#"))
        self.assertTrue(collapsed["b"].startswith("#"))
        self.assertEqual(collapsed["c"], "#nowhere")

    def test_parent_reference_namespaces(self) -> None:
        self.assertEqual(texture_slots.parent_reference("item/generated", "mypack"), ("minecraft", "item/generated"))
        self.assertEqual(texture_slots.parent_reference("block/cube_all", "mypack"), ("minecraft", "block/cube_all"))
        self.assertEqual(texture_slots.parent_reference("other:item/base", "mypack"), ("other", "item/base"))
        self.assertEqual(texture_slots.parent_reference("custom/base", "mypack"), ("mypack", "custom/base"))

    def test_canonical_texture_path(self) -> None:
        self.assertEqual(
            texture_slots.canonical_texture_path("item/ruby"),
            "assets/minecraft/textures/item/ruby.png",
        )
        self.assertEqual(
            texture_slots.canonical_texture_path("mypack:textures/item/ruby.png"),
            "assets/mypack/textures/item/ruby.png",
        )
        self.assertEqual(texture_slots.canonical_texture_path("#layer0"), "")
        self.assertEqual(texture_slots.canonical_texture_path("  "), "")

    def test_model_name_candidates(self) -> None:
        self.assertEqual(
            texture_slots.model_name_candidates("ruby"),
            ["models/ruby.json", "models/item/ruby.json", "models/block/ruby.json"],
        )
        self.assertEqual(texture_slots.model_name_candidates("models/item/ruby.json"), ["models/item/ruby.json"])


class TextureSlotResolverTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.slots = TextureSlotResolver(AssetResolver(self.root))

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_child_values_win_and_aliases_resolve_across_chain(self) -> None:
        _write_model(
            self.root,
            "mypack",
            "item/child",
            {"parent": "mypack:item/parent", "textures": {"a": "#b", "b": "mypack:item/x", "d": "#c"}},
        )
        _write_model(
            self.root,
            "mypack",
            "item/parent",
            {"textures": {"b": "mypack:item/y", "c": "mypack:item/z"}},
        )

        values = self.slots.collect_texture_values("mypack", "child")

        self.assertEqual(
            values,
            {
                "a": "assets/mypack/textures/item/x.png",
                "b": "assets/mypack/textures/item/x.png",
                "c": "assets/mypack/textures/item/z.png",
                "d": "assets/mypack/textures/item/z.png",
            },
        )

    def test_particle_slot_is_dropped(self) -> None:
        _write_model(
            self.root,
            "mypack",
            "item/ruby",
            {"textures": {"particle": "mypack:item/ruby", "layer0": "mypack:item/ruby"}},
        )

        values = self.slots.collect_texture_values("mypack", "ruby")

        self.assertEqual(list(values), ["layer0"])

    def test_cyclic_parent_chain_terminates(self) -> None:
        _write_model(self.root, "mypack", "item/loop_a", {"parent": "mypack:item/loop_b", "textures": {"a": "mypack:item/a"}})
        _write_model(self.root, "mypack", "item/loop_b", {"parent": "mypack:item/loop_a", "textures": {"b": "mypack:item/b"}})

        values = self.slots.collect_texture_values("mypack", "loop_a", max_depth=8)

        self.assertEqual(set(values), {"a", "b"})

    def test_depth_limit_stops_walk(self) -> None:
        _write_model(self.root, "mypack", "item/child", {"parent": "mypack:item/parent", "textures": {"a": "mypack:item/a"}})
        _write_model(self.root, "mypack", "item/parent", {"textures": {"b": "mypack:item/b"}})

        values = self.slots.collect_texture_values("mypack", "child", max_depth=1)

        self.assertEqual(set(values), {"a"})

    def test_builtin_parent_resolved_in_minecraft_namespace(self) -> None:
        _write_model(self.root, "mypack", "item/ruby", {"parent": "item/handheld", "textures": {"layer0": "mypack:item/ruby"}})
        _write_model(self.root, "minecraft", "item/handheld", {"textures": {"layer1": "item/overlay"}})

        values = self.slots.collect_texture_values("mypack", "ruby")

        self.assertEqual(values["layer1"], "assets/minecraft/textures/item/overlay.png")

    def test_resolve_slots_omits_missing_textures(self) -> None:
        _write_model(
            self.root,
            "mypack",
            "item/ruby",
            {"textures": {"layer0": "mypack:item/ruby", "layer1": "mypack:item/missing"}},
        )
        texture = _write_texture(self.root, "mypack", "item/ruby")

        slots = self.slots.resolve_slots("mypack", "ruby")

        self.assertEqual(list(slots), ["layer0"])
        self.assertEqual(slots["layer0"].location, texture)

    def test_load_model_reports_malformed_and_missing(self) -> None:
        path = _pack_dir(self.root, "mypack") / "models" / "item" / "broken.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("{broken", encoding="utf-8")

        document, asset, notes = self.slots.load_model("mypack", "broken")

        self.assertIsNone(document)
        self.assertIsNone(asset)
        self.assertTrue(any(note.startswith("malformed_document: ") for note in notes))
        self.assertTrue(notes[-1].startswith("not_found: "))


if __name__ == "__main__":
    unittest.main()
