#!/usr/bin/env python3
"""Icon rendering for converted models.

``IconRenderer`` is the seam a real 3D snapshot renderer plugs into.
``FlatTextureIconRenderer`` is the built-in fallback: it scales the first
readable slot texture onto a square transparent canvas.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Mapping

from PIL import Image, UnidentifiedImageError


DEFAULT_ICON_SIZE = 64


class IconRenderer:
    def render_icon(
        self,
        model_path: Path,
        texture_slots: Mapping[str, Path],
        icon_path: Path,
    ) -> bool:
        """Write a PNG snapshot to *icon_path*; return ``True`` when it exists."""
        raise NotImplementedError


class FlatTextureIconRenderer(IconRenderer):
    def __init__(self, size: int = DEFAULT_ICON_SIZE) -> None:
        self.size = max(1, size)

    def render_icon(
        self,
        model_path: Path,
        texture_slots: Mapping[str, Path],
        icon_path: Path,
    ) -> bool:
        for slot, texture_path in texture_slots.items():
            try:
                with Image.open(texture_path) as source:
                    image = source.convert("RGBA")
            except (OSError, UnidentifiedImageError) as exc:
                logging.debug("Icon source %s (%s) unreadable: %s", texture_path, slot, exc)
                continue

            # Animated strips stack frames vertically; keep the first square frame.
            if image.height > image.width:
                image = image.crop((0, 0, image.width, image.width))

            scale = self.size / max(image.width, image.height)
            width = max(1, round(image.width * scale))
            height = max(1, round(image.height * scale))
            resized = image.resize((width, height), Image.NEAREST)

            canvas = Image.new("RGBA", (self.size, self.size), (0, 0, 0, 0))
            canvas.paste(resized, ((self.size - width) // 2, (self.size - height) // 2))
            try:
                icon_path.parent.mkdir(parents=True, exist_ok=True)
                canvas.save(icon_path, format="PNG")
            except OSError as exc:
                logging.warning("Failed to write icon %s for %s: %s", icon_path, model_path, exc)
                return False
            logging.debug("Rendered flat icon %s from %s", icon_path, texture_path)
            return True

        logging.debug("No readable texture to render icon for %s", model_path)
        return False
