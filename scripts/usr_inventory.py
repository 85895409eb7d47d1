#!/usr/bin/env python3
"""
Parse, edit and re-serialize the Inventory section of .usr player files.

The section looks like:

    Inventory   = {1 Content={3354},
                   3 Content={2854 Content={2853, 3031 Amount=40}},
                   10 Content={2854 Content={3449 Amount=100, 3155 Charges=35}}}
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field

INVENTORY_KEY = "Inventory"
INVENTORY_EMPTY = "Inventory   = {}"
INVENTORY_OPEN = "Inventory   = {"
SLOT_SEPARATOR = ",\n" + " " * 15
CONTENT_MARKER = "Content="

INVENTORY_PATTERN = re.compile(r"Inventory\s*=\s*\{")
AMOUNT_PATTERN = re.compile(r"Amount\s*=\s*([0-9]+)")
CHARGES_PATTERN = re.compile(r"Charges\s*=\s*([0-9]+)")
DIGITS_PATTERN = re.compile(r"[0-9]+")


class InventoryParseError(ValueError):
    """Raised when inventory text does not follow the slot/item grammar."""


class UnbalancedBracesError(InventoryParseError):
    pass


class SectionNotFoundError(InventoryParseError):
    pass


def _preview(text: str, size: int = 40) -> str:
    text = " ".join(text.split())
    return text if len(text) <= size else text[:size] + "..."


def find_matching_brace(text: str, start: int, open_char: str = "{", close_char: str = "}") -> int:
    """Return the index of the delimiter closing the one just before ``start``.

    ``start`` points one past an already-consumed opening delimiter, so the
    scan begins at depth 1.
    """
    depth = 1
    for pos in range(start, len(text)):
        char = text[pos]
        if char == open_char:
            depth += 1
        elif char == close_char:
            depth -= 1
            if depth == 0:
                return pos
    raise UnbalancedBracesError(
        f"unbalanced '{open_char}{close_char}' starting at offset {start}: {_preview(text[start:])!r}"
    )


def split_top_level(content: str, separator: str = ",") -> list[str]:
    """Split on ``separator`` only where brace depth is zero; drop empty fragments."""
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    for char in content:
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
        elif char == separator and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(char)
    parts.append("".join(current))
    return [part.strip() for part in parts if part.strip()]


def _skip_whitespace(text: str, pos: int) -> int:
    while pos < len(text) and text[pos].isspace():
        pos += 1
    return pos


@dataclass
class InventoryItem:
    type_id: int
    amount: int | None = None
    charges: int | None = None
    contents: list[InventoryItem] = field(default_factory=list)

    @classmethod
    def with_amount(cls, type_id: int, amount: int) -> InventoryItem:
        return cls(type_id, amount=amount)

    @classmethod
    def with_charges(cls, type_id: int, charges: int) -> InventoryItem:
        return cls(type_id, charges=charges)

    @classmethod
    def container(cls, type_id: int, contents: list[InventoryItem]) -> InventoryItem:
        return cls(type_id, contents=list(contents))

    @classmethod
    def parse(cls, content: str) -> InventoryItem:
        """Parse one item from the text inside a ``Content={...}`` body.

        Amount/Charges are only looked up before the item's own ``Content=``
        marker, so attributes of nested children never leak upwards.
        """
        text = content.strip()
        match = DIGITS_PATTERN.match(text)
        if match is None:
            raise InventoryParseError(f"no type id at start of item: {_preview(text)!r}")

        item = cls(int(match.group(0)))
        remainder = text[match.end():]
        marker = remainder.find(CONTENT_MARKER)
        attributes = remainder if marker < 0 else remainder[:marker]

        amount = AMOUNT_PATTERN.search(attributes)
        if amount:
            item.amount = int(amount.group(1))
        charges = CHARGES_PATTERN.search(attributes)
        if charges:
            item.charges = int(charges.group(1))

        if marker < 0:
            return item

        pos = _skip_whitespace(remainder, marker + len(CONTENT_MARKER))
        if pos >= len(remainder) or remainder[pos] != "{":
            raise InventoryParseError(f"expected '{{' after Content= in item: {_preview(text)!r}")
        close = find_matching_brace(remainder, pos + 1)
        item.contents = [cls.parse(fragment) for fragment in split_top_level(remainder[pos + 1:close])]
        return item

    def serialize(self) -> str:
        result = str(self.type_id)
        if self.amount is not None:
            result += f" Amount={self.amount}"
        if self.charges is not None:
            result += f" Charges={self.charges}"
        if self.contents:
            result += " Content={" + ", ".join(child.serialize() for child in self.contents) + "}"
        return result


@dataclass
class InventorySlot:
    slot_number: int
    item: InventoryItem

    def serialize(self) -> str:
        return f"{self.slot_number} Content={{{self.item.serialize()}}}"


@dataclass
class InventorySection:
    slots: list[InventorySlot] = field(default_factory=list)

    @classmethod
    def parse(cls, content: str) -> InventorySection:
        """Parse the text between ``Inventory = {`` and its matching ``}``."""
        slots: list[InventorySlot] = []
        pos = 0
        length = len(content)
        while pos < length:
            while pos < length and (content[pos].isspace() or content[pos] == ","):
                pos += 1
            match = DIGITS_PATTERN.match(content, pos)
            if match is None:
                # anything after the last slot is ignored
                break
            slot_number = int(match.group(0))

            pos = _skip_whitespace(content, match.end())
            if not content.startswith(CONTENT_MARKER, pos):
                raise InventoryParseError(
                    f"slot {slot_number}: expected 'Content=' at offset {pos}, found {_preview(content[pos:], 20)!r}"
                )
            pos = _skip_whitespace(content, pos + len(CONTENT_MARKER))
            if pos >= length or content[pos] != "{":
                raise InventoryParseError(f"slot {slot_number}: expected '{{' after Content=")

            try:
                close = find_matching_brace(content, pos + 1)
                item = InventoryItem.parse(content[pos + 1:close])
            except InventoryParseError as err:
                raise type(err)(f"slot {slot_number}: {err}") from err
            slots.append(InventorySlot(slot_number, item))
            pos = close + 1
        return cls(slots)

    def get_slot(self, slot_number: int) -> InventoryItem | None:
        for slot in self.slots:
            if slot.slot_number == slot_number:
                return slot.item
        return None

    def is_slot_empty(self, slot_number: int) -> bool:
        return all(slot.slot_number != slot_number for slot in self.slots)

    def set_slot(self, slot_number: int, item: InventoryItem) -> None:
        self.slots = [slot for slot in self.slots if slot.slot_number != slot_number]
        self.slots.append(InventorySlot(slot_number, item))
        self.slots.sort(key=lambda slot: slot.slot_number)

    def serialize(self) -> str:
        if not self.slots:
            return INVENTORY_EMPTY
        ordered = sorted(self.slots, key=lambda slot: slot.slot_number)
        return INVENTORY_OPEN + SLOT_SEPARATOR.join(slot.serialize() for slot in ordered) + "}"


@dataclass(frozen=True)
class InventorySpan:
    content: str
    start: int
    end: int


def locate_inventory_section(text: str) -> InventorySpan:
    """Find the first ``Inventory = {...}`` block in a whole player file.

    ``start`` is the offset of the ``Inventory`` key and ``end`` is one past
    the closing brace. Offsets are only valid for this exact ``text``.
    """
    match = INVENTORY_PATTERN.search(text)
    if match is None:
        raise SectionNotFoundError(f"{INVENTORY_KEY} section not found")
    close = find_matching_brace(text, match.end())
    return InventorySpan(text[match.end():close], match.start(), close + 1)


def splice_section(text: str, span: InventorySpan, replacement: str) -> str:
    if not 0 <= span.start <= span.end <= len(text):
        raise ValueError(f"span {span.start}..{span.end} out of range for text of length {len(text)}")
    return text[:span.start] + replacement + text[span.end:]


def replace_inventory_section(text: str, replacement: str) -> str:
    return splice_section(text, locate_inventory_section(text), replacement)
