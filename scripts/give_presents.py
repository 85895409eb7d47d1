#!/usr/bin/env python3
"""
Give a present container to every player by editing their .usr files.

The present is described by a TOML file:

    [container]
    type_id = 2854

    [[items]]
    type_id = 3726
    amount = 99

    [[items]]
    type_id = 3155
    charges = 35

Each player file is handled on its own: the Inventory section is parsed, the
present goes into the target slot if that slot is free, and only the
Inventory section of the file is rewritten.
"""
from __future__ import annotations

import argparse
import logging
import os
import tomllib
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from script_logging import add_logging_arguments, setup_logging
from usr_files import extract_player_name, find_usr_files, read_usr_text, write_usr_text
from usr_inventory import InventoryItem, InventoryParseError, InventorySection, locate_inventory_section, splice_section

logger = logging.getLogger(__name__)

DEFAULT_TARGET_SLOT = 10

STAGE_READ = "read"
STAGE_LOCATE = "locate"
STAGE_PARSE = "parse"
STAGE_SPLICE = "splice"
STAGE_WRITE = "write"


class PresentConfigError(ValueError):
    pass


def _optional_int(entry: dict, key: str, where: str) -> int | None:
    value = entry.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise PresentConfigError(f"{where}.{key} must be an integer, got {value!r}")
    return value


def _required_int(entry: dict, key: str, where: str) -> int:
    value = _optional_int(entry, key, where)
    if value is None:
        raise PresentConfigError(f"{where}.{key} is required")
    return value


@dataclass(frozen=True)
class PresentItemConfig:
    type_id: int
    amount: int | None = None
    charges: int | None = None

    def to_inventory_item(self) -> InventoryItem:
        return InventoryItem(self.type_id, amount=self.amount, charges=self.charges)


@dataclass(frozen=True)
class PresentConfig:
    container_type_id: int
    items: tuple[PresentItemConfig, ...] = ()

    @classmethod
    def from_file(cls, path: Path) -> PresentConfig:
        path = Path(path)
        try:
            with path.open("rb") as handle:
                raw = tomllib.load(handle)
        except OSError as err:
            raise PresentConfigError(f"Failed to read present config from {path}: {err}") from err
        except tomllib.TOMLDecodeError as err:
            raise PresentConfigError(f"Failed to parse present config {path}: {err}") from err
        return cls.from_dict(raw)

    @classmethod
    def from_string(cls, text: str) -> PresentConfig:
        try:
            raw = tomllib.loads(text)
        except tomllib.TOMLDecodeError as err:
            raise PresentConfigError(f"Failed to parse present config TOML: {err}") from err
        return cls.from_dict(raw)

    @classmethod
    def from_dict(cls, raw: dict) -> PresentConfig:
        container = raw.get("container")
        if not isinstance(container, dict):
            raise PresentConfigError("missing [container] table")
        entries = raw.get("items", [])
        if not isinstance(entries, list):
            raise PresentConfigError("items must be an array of tables ([[items]])")

        items = []
        for idx, entry in enumerate(entries):
            where = f"items[{idx}]"
            if not isinstance(entry, dict):
                raise PresentConfigError(f"{where} must be a table")
            items.append(PresentItemConfig(
                type_id=_required_int(entry, "type_id", where),
                amount=_optional_int(entry, "amount", where),
                charges=_optional_int(entry, "charges", where),
            ))
        return cls(_required_int(container, "type_id", "container"), tuple(items))

    def to_inventory_item(self) -> InventoryItem:
        return InventoryItem.container(self.container_type_id, [item.to_inventory_item() for item in self.items])


@dataclass(frozen=True)
class Gifted:
    player_name: str


@dataclass(frozen=True)
class SlotOccupied:
    player_name: str


@dataclass(frozen=True)
class GiftError:
    player_name: str
    reason: str
    stage: str

    @property
    def mutated(self) -> bool:
        """True when the inventory was edited in memory but never reached disk."""
        return self.stage == STAGE_WRITE


GiftResult = Gifted | SlotOccupied | GiftError


@dataclass
class GiftSummary:
    total: int = 0
    gifted: int = 0
    skipped: int = 0
    errors: int = 0

    def add_result(self, result: GiftResult) -> None:
        self.total += 1
        if isinstance(result, Gifted):
            self.gifted += 1
        elif isinstance(result, SlotOccupied):
            self.skipped += 1
        else:
            self.errors += 1

    @classmethod
    def from_results(cls, results: Iterable[GiftResult]) -> GiftSummary:
        summary = cls()
        for result in results:
            summary.add_result(result)
        return summary


def apply_present_to_file(
    path: Path,
    config: PresentConfig,
    target_slot: int = DEFAULT_TARGET_SLOT,
    dry_run: bool = False,
) -> GiftResult:
    try:
        text = read_usr_text(path)
    except (OSError, UnicodeDecodeError) as err:
        return GiftError(str(path), f"Failed to read file: {err}", STAGE_READ)

    player_name = extract_player_name(text)

    try:
        span = locate_inventory_section(text)
    except InventoryParseError as err:
        return GiftError(player_name, f"Failed to extract inventory: {err}", STAGE_LOCATE)

    try:
        inventory = InventorySection.parse(span.content)
    except InventoryParseError as err:
        return GiftError(player_name, f"Failed to parse inventory: {err}", STAGE_PARSE)

    if not inventory.is_slot_empty(target_slot):
        return SlotOccupied(player_name)

    inventory.set_slot(target_slot, config.to_inventory_item())

    try:
        new_text = splice_section(text, span, inventory.serialize())
    except ValueError as err:
        return GiftError(player_name, f"Failed to replace inventory: {err}", STAGE_SPLICE)

    if not dry_run:
        try:
            write_usr_text(path, new_text)
        except UnicodeEncodeError as err:
            return GiftError(player_name, f"Failed to encode file content to cp1252: {err}", STAGE_WRITE)
        except OSError as err:
            return GiftError(player_name, f"Failed to write file: {err}", STAGE_WRITE)

    return Gifted(player_name)


def give_presents(
    paths: list[Path],
    config: PresentConfig,
    target_slot: int = DEFAULT_TARGET_SLOT,
    dry_run: bool = False,
    workers: int | None = None,
) -> list[GiftResult]:
    """Apply the present to every file; results come back in ``paths`` order."""
    if not paths:
        return []
    max_workers = max(1, workers or os.cpu_count() or 1)
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        return list(pool.map(lambda p: apply_present_to_file(p, config, target_slot, dry_run), paths))


def _log_result(result: GiftResult, quiet: int) -> None:
    if isinstance(result, Gifted):
        if quiet == 0:
            logger.info("Gifted: %s", result.player_name)
    elif isinstance(result, SlotOccupied):
        if quiet == 0:
            logger.info("Skipped (slot occupied): %s", result.player_name)
    elif quiet < 2:
        if result.mutated:
            logger.warning("Error for %s (inventory edited but not saved): %s", result.player_name, result.reason)
        else:
            logger.warning("Error for %s: %s", result.player_name, result.reason)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Give presents to players by modifying .usr files.")
    parser.add_argument("--usr-path", type=Path, required=True, help="usr/ directory containing player files.")
    parser.add_argument("--present-config", type=Path, required=True, help="TOML file defining the present contents.")
    parser.add_argument("--target-slot", type=int, default=DEFAULT_TARGET_SLOT, help="Inventory slot for the present (default: 10).")
    parser.add_argument("--dry-run", action="store_true", help="Show what would be done without modifying files.")
    parser.add_argument("--quiet", type=int, choices=(0, 1, 2), default=0, help="0=messages and warnings, 1=warnings only, 2=neither.")
    parser.add_argument("--workers", type=int, default=None, help="Worker threads (default: CPU count).")
    add_logging_arguments(parser)
    args = parser.parse_args(argv)

    setup_logging(args.verbose, args.log_file)
    logger.info("Giving presents%s from %s", " (DRY RUN)" if args.dry_run else "", args.present_config)

    if not args.usr_path.is_dir():
        logger.error("usr path not found: %s", args.usr_path)
        return 1
    try:
        config = PresentConfig.from_file(args.present_config)
    except PresentConfigError as err:
        logger.error("Failed to load present config: %s", err)
        return 1

    logger.info(
        "Present: container %s with %d items, target slot %s",
        config.container_type_id, len(config.items), args.target_slot,
    )

    paths = find_usr_files(args.usr_path)
    logger.info("Found %d .usr files", len(paths))

    results = give_presents(paths, config, args.target_slot, args.dry_run, args.workers)
    for result in results:
        _log_result(result, args.quiet)

    summary = GiftSummary.from_results(results)
    if args.quiet == 0:
        print(f"total processed: {summary.total}")
        print(f"gifted: {summary.gifted}")
        print(f"skipped (slot occupied): {summary.skipped}")
        print(f"errors: {summary.errors}")
        if args.dry_run:
            print("dry run: no files were modified")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
