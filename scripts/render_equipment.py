#!/usr/bin/env python3
"""
Render each player's worn equipment onto the equipment template image.

Equipment is read from inventory slots 1-10 of the .usr file; the top-level
item in each slot is drawn from ``<item-dir>/<type_id>.png``. Empty slots and
items without a sprite get the blank tile.
"""
from __future__ import annotations

import argparse
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from PIL import Image

from script_logging import add_logging_arguments, setup_logging
from usr_files import extract_player_id, extract_player_name, find_usr_files, read_usr_text
from usr_inventory import InventorySection, SectionNotFoundError, locate_inventory_section

logger = logging.getLogger(__name__)

# (x, y) of each slot on the template, slot 1 first
EQUIPMENT_POSITIONS = (
    (40, 2),    # helmet
    (3, 17),    # amulet
    (77, 17),   # backpack
    (40, 40),   # armor
    (77, 53),   # right hand
    (3, 54),    # left hand
    (40, 77),   # legs
    (40, 114),  # boots
    (3, 91),    # ring
    (77, 90),   # ammunition
)
EQUIPMENT_SLOTS = tuple(range(1, len(EQUIPMENT_POSITIONS) + 1))


def read_equipment(inventory: InventorySection) -> list[int | None]:
    equipment: list[int | None] = []
    for slot_number in EQUIPMENT_SLOTS:
        item = inventory.get_slot(slot_number)
        equipment.append(item.type_id if item is not None else None)
    return equipment


def read_equipment_from_text(text: str) -> list[int | None]:
    try:
        span = locate_inventory_section(text)
    except SectionNotFoundError:
        return [None] * len(EQUIPMENT_SLOTS)
    return read_equipment(InventorySection.parse(span.content))


def load_image(path: Path) -> Image.Image:
    with Image.open(path) as image:
        return image.convert("RGBA")


def load_item_sprite(item_dir: Path, type_id: int) -> Image.Image | None:
    path = Path(item_dir) / f"{type_id}.png"
    if not path.exists():
        return None
    return load_image(path)


def render_equipment(
    equipment: list[int | None],
    template: Image.Image,
    blank: Image.Image,
    item_dir: Path,
    player_name: str = "",
) -> Image.Image:
    canvas = template.convert("RGBA")
    for slot_index, (type_id, position) in enumerate(zip(equipment, EQUIPMENT_POSITIONS)):
        sprite = blank
        if type_id is not None:
            found = load_item_sprite(item_dir, type_id)
            if found is None:
                logger.warning(
                    "Item %s not found for player %s (slot %d). Using blank.",
                    type_id, player_name, slot_index + 1,
                )
            else:
                sprite = found
        canvas.alpha_composite(sprite, dest=position)
    return canvas


def _save_image(image: Image.Image, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    image.save(path, format="PNG")


def render_player_file(
    path: Path,
    template: Image.Image,
    blank: Image.Image,
    item_dir: Path,
    output_dir: Path,
) -> Path:
    text = read_usr_text(path)
    player_id = extract_player_id(text)
    if player_id is None:
        raise ValueError(f"Missing ID field in {path}")
    player_name = extract_player_name(text)

    equipment = read_equipment_from_text(text)
    image = render_equipment(equipment, template, blank, item_dir, player_name)

    file_out = Path(output_dir) / f"{player_id}.png"
    _save_image(image, file_out)
    return file_out


def render_all(
    paths: list[Path],
    template: Image.Image,
    blank: Image.Image,
    item_dir: Path,
    output_dir: Path,
    quiet: int = 0,
    workers: int | None = None,
) -> tuple[int, int]:
    """Render every player file; returns (rendered, failed)."""
    def render_one(path: Path) -> bool:
        try:
            file_out = render_player_file(path, template, blank, item_dir, output_dir)
        except (OSError, ValueError) as err:
            if quiet < 2:
                logger.warning("Failed to render %s: %s", path, err)
            return False
        if quiet == 0:
            logger.info("Rendered %s", file_out)
        return True

    if not paths:
        return 0, 0
    max_workers = max(1, workers or os.cpu_count() or 1)
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        outcomes = list(pool.map(render_one, paths))
    rendered = sum(outcomes)
    return rendered, len(outcomes) - rendered


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Render player equipment images from .usr files.")
    parser.add_argument("--usr-path", type=Path, required=True, help="usr/ directory containing player files.")
    parser.add_argument("--item-dir", type=Path, required=True, help="Directory of <type_id>.png item sprites.")
    parser.add_argument("--template", type=Path, required=True, help="Equipment template image.")
    parser.add_argument("--blank", type=Path, required=True, help="Tile used for empty slots and missing sprites.")
    parser.add_argument("--output-dir", type=Path, required=True, help="Where <player_id>.png files are written.")
    parser.add_argument("--quiet", type=int, choices=(0, 1, 2), default=0, help="0=messages and warnings, 1=warnings only, 2=neither.")
    parser.add_argument("--workers", type=int, default=None, help="Worker threads (default: CPU count).")
    add_logging_arguments(parser)
    args = parser.parse_args(argv)

    setup_logging(args.verbose, args.log_file)

    for label, path in (("template", args.template), ("blank", args.blank)):
        if not path.exists():
            logger.error("%s image not found: %s", label, path)
            return 1
    if not args.usr_path.is_dir():
        logger.error("usr path not found: %s", args.usr_path)
        return 1

    template = load_image(args.template)
    blank = load_image(args.blank)
    paths = find_usr_files(args.usr_path)
    logger.info("Found %d .usr files", len(paths))

    rendered, failed = render_all(paths, template, blank, args.item_dir, args.output_dir, args.quiet, args.workers)
    if args.quiet == 0:
        print(f"done: rendered {rendered}/{len(paths)} equipment images ({failed} failed)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
