#!/usr/bin/env python3
"""
bedrock_convert.py
==================

Batch convert Java edition custom models (items, blocks, furniture, helmets)
into a Bedrock resource pack: geometry, attachables, model textures, icons and
item definitions.

Models are looked up below the content root (loose ``content/<ns>/resourcepack``
trees first, then ``output/resourcepack``, then the ``output/generated.zip``
build archive). One bad model never stops the batch; failures are counted and
listed in the optional JSON report.

Example usage:

    python bedrock_convert.py \\
        --content-root plugins/ItemsAdder \\
        --pack-root build/bedrock_pack \\
        --model mypack:ruby_sword=item/ruby_sword \\
        --jobs jobs.json \\
        --workers 4 \\
        --report reports/bedrock_conversion.json

A jobs file is a JSON list of objects with ``namespace``, ``id`` and optional
``model`` (defaults to ``id``), ``kind`` and ``icon`` keys.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, fields as dataclass_fields
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from icon_renderer import DEFAULT_ICON_SIZE, FlatTextureIconRenderer, IconRenderer
from model_builder import ConversionSession, ModelBuilder, ModelKind
from pack_writer import DEFAULT_PACK_NAME, PackWriter
from texture_slots import DEFAULT_MAX_DEPTH


DEFAULT_PACK_ROOT = Path("bedrock_pack")


@dataclass
class ConversionStats:
    total: int = 0
    converted: int = 0
    without_geometry: int = 0
    failed: int = 0
    icons: int = 0
    textures_planned: int = 0
    notes: int = 0
    failures: List[Dict[str, object]] = field(default_factory=list)


def merge_stats(target: ConversionStats, source: ConversionStats) -> None:
    """Merge *source* into *target* by summing int fields and extending list fields."""
    for f in dataclass_fields(ConversionStats):
        src_val = getattr(source, f.name)
        if isinstance(src_val, int):
            setattr(target, f.name, getattr(target, f.name) + src_val)
        elif isinstance(src_val, list):
            getattr(target, f.name).extend(src_val)


@dataclass(frozen=True)
class ConversionJob:
    namespace: str
    item_id: str
    model: str
    kind: ModelKind = ModelKind.ITEM
    icon: Optional[Path] = None

    @property
    def label(self) -> str:
        return f"{self.namespace}:{self.item_id}"


def parse_model_arg(raw_value: str, kind: ModelKind = ModelKind.ITEM) -> ConversionJob:
    """Parse ``NS:ID`` or ``NS:ID=MODEL``."""
    token = raw_value.strip()
    target, _, model = token.partition("=")
    namespace, sep, item_id = target.partition(":")
    if not sep or not namespace.strip() or not item_id.strip():
        raise ValueError(f"invalid --model value '{raw_value}'. Use NS:ID or NS:ID=MODEL.")
    model = model.strip() or item_id.strip()
    return ConversionJob(
        namespace=namespace.strip(),
        item_id=item_id.strip(),
        model=model,
        kind=kind,
    )


def load_jobs_file(path: Path, default_kind: ModelKind) -> List[ConversionJob]:
    payload = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(payload, list):
        raise ValueError(f"{path}: expected a JSON list of jobs")

    jobs: List[ConversionJob] = []
    for index, entry in enumerate(payload):
        if not isinstance(entry, dict):
            raise ValueError(f"{path}: job {index} is not an object")
        namespace = str(entry.get("namespace") or "").strip()
        item_id = str(entry.get("id") or "").strip()
        if not namespace or not item_id:
            raise ValueError(f"{path}: job {index} needs 'namespace' and 'id'")
        kind_value = entry.get("kind")
        icon_value = entry.get("icon")
        jobs.append(
            ConversionJob(
                namespace=namespace,
                item_id=item_id,
                model=str(entry.get("model") or item_id).strip(),
                kind=ModelKind(kind_value) if kind_value else default_kind,
                icon=Path(icon_value) if icon_value else None,
            )
        )
    return jobs


def convert_job(
    job: ConversionJob,
    builder: ModelBuilder,
    writer: PackWriter,
    icon_renderer: Optional[IconRenderer],
) -> ConversionStats:
    """Build and write one model. Returns local stats."""
    stats = ConversionStats(total=1)
    try:
        built = builder.build(
            job.kind,
            job.namespace,
            job.item_id,
            job.model,
            provided_icon=job.icon,
            icon_renderer=icon_renderer,
        )
        notes = list(built.notes)
        notes.extend(writer.write(built))
    except Exception as exc:  # noqa: BLE001
        stats.failed += 1
        stats.failures.append({"job": job.label, "error": str(exc), "type": "worker"})
        logging.error("Conversion worker error for %s: %s", job.label, exc)
        return stats

    stats.notes += len(notes)
    stats.textures_planned += len(built.textures_to_copy)
    if built.icon_path is not None:
        stats.icons += 1

    if built.has_geometry:
        stats.converted += 1
    elif built.geometry is None:
        stats.failed += 1
        stats.failures.append({"job": job.label, "model": job.model, "notes": notes, "type": "model"})
    else:
        stats.without_geometry += 1
        stats.failures.append({"job": job.label, "model": job.model, "notes": notes, "type": "empty"})

    for note in notes:
        logging.debug("%s: %s", job.label, note)
    return stats


def convert_all(
    session: ConversionSession,
    jobs: Sequence[ConversionJob],
    writer: PackWriter,
    icon_renderer: Optional[IconRenderer],
    report_path: Optional[Path],
    workers: int = 1,
) -> ConversionStats:
    stats = ConversionStats()
    builder = ModelBuilder(session)
    total = len(jobs)
    logging.info("Converting %d models from %s (workers=%d)", total, session.content_root, workers)
    start_time = time.time()

    if workers <= 1:
        for job in jobs:
            merge_stats(stats, convert_job(job, builder, writer, icon_renderer))
    else:
        # Threads, not processes: every worker shares the session asset cache.
        with ThreadPoolExecutor(max_workers=workers) as executor:
            results = executor.map(
                lambda job: convert_job(job, builder, writer, icon_renderer),
                jobs,
            )
            for job_stats in results:
                merge_stats(stats, job_stats)

    elapsed = time.time() - start_time
    logging.info(
        "Conversion complete in %.1fs: %d converted, %d without geometry, %d failed, %d icons, %d extracted from archive",
        elapsed,
        stats.converted,
        stats.without_geometry,
        stats.failed,
        stats.icons,
        session.cache.extraction_count,
    )

    if report_path:
        report_path.parent.mkdir(parents=True, exist_ok=True)
        report = {
            "content_root": str(session.content_root),
            "total": stats.total,
            "converted": stats.converted,
            "without_geometry": stats.without_geometry,
            "failed": stats.failed,
            "icons": stats.icons,
            "textures_planned": stats.textures_planned,
            "notes": stats.notes,
            "archive_extractions": session.cache.extraction_count,
            "failures": stats.failures,
        }
        report_path.write_text(json.dumps(report, indent=2))
        logging.info("Report written to %s", report_path)

    return stats


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Convert Java edition custom models into a Bedrock resource pack."
    )
    parser.add_argument(
        "--content-root", type=Path, required=True,
        help="Root holding content/<ns>/resourcepack trees and output/generated.zip",
    )
    parser.add_argument(
        "--pack-root", type=Path, default=DEFAULT_PACK_ROOT,
        help="Bedrock resource pack output directory (default: %(default)s).",
    )
    parser.add_argument(
        "--pack-name", default=DEFAULT_PACK_NAME,
        help="Resource pack name written into the item atlas (default: %(default)s).",
    )
    parser.add_argument(
        "--model",
        action="append",
        default=[],
        metavar="NS:ID[=MODEL]",
        help="Model to convert. MODEL defaults to ID. Can be supplied multiple times.",
    )
    parser.add_argument(
        "--jobs", type=Path,
        help="JSON file listing jobs ({namespace, id, model?, kind?, icon?}).",
    )
    parser.add_argument(
        "--kind",
        default=ModelKind.ITEM.value,
        choices=[kind.value for kind in ModelKind],
        help="Kind applied to --model entries and jobs without one (default: %(default)s).",
    )
    parser.add_argument(
        "--max-depth", type=int, default=DEFAULT_MAX_DEPTH,
        help="Maximum parent-model chain length (default: %(default)s).",
    )
    parser.add_argument(
        "--icon-size", type=int, default=DEFAULT_ICON_SIZE,
        help="Edge length of rendered icons in pixels (default: %(default)s).",
    )
    parser.add_argument("--no-icons", action="store_true", help="Do not render missing icons.")
    parser.add_argument("--dry-run", action="store_true", help="Build models but write nothing to the pack.")
    parser.add_argument(
        "--report", type=Path, default=None,
        help="Path for JSON conversion report",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument(
        "--workers", type=int, default=min(8, os.cpu_count() or 4),
        help="Number of worker threads (default: %(default)s).",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)-8s %(message)s",
        datefmt="%H:%M:%S",
    )
    logging.getLogger("PIL").setLevel(logging.INFO)

    if not args.content_root.is_dir():
        logging.error("Content root not found: %s", args.content_root)
        return 1

    kind = ModelKind(args.kind)
    try:
        jobs = [parse_model_arg(raw, kind) for raw in args.model]
        if args.jobs:
            jobs.extend(load_jobs_file(args.jobs, kind))
    except (OSError, ValueError) as exc:
        logging.error("Invalid job list: %s", exc)
        return 1

    if not jobs:
        logging.error("Nothing to convert: pass --model and/or --jobs")
        return 1

    session = ConversionSession(args.content_root, max_depth=max(1, args.max_depth))
    writer = PackWriter(args.pack_root, pack_name=args.pack_name, dry_run=args.dry_run)
    icon_renderer = None if args.no_icons else FlatTextureIconRenderer(args.icon_size)

    stats = convert_all(
        session=session,
        jobs=jobs,
        writer=writer,
        icon_renderer=icon_renderer,
        report_path=args.report,
        workers=max(1, args.workers),
    )

    if stats.failed > 0:
        logging.warning("%d models failed conversion", stats.failed)

    return 0


if __name__ == "__main__":
    sys.exit(main())
