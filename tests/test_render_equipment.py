import logging
from pathlib import Path

from PIL import Image

import render_equipment
from render_equipment import (
    EQUIPMENT_POSITIONS,
    read_equipment,
    read_equipment_from_text,
    render_all,
    render_equipment as render,
    render_player_file,
)
from usr_inventory import InventorySection

TEMPLATE_COLOR = (10, 20, 30, 255)
BLANK_COLOR = (200, 200, 200, 255)
SWORD_COLOR = (255, 0, 0, 255)

PLAYER = (
    "ID = 4242\n"
    'Name = "Bob"\n'
    "Inventory   = {1 Content={3354},\n"
    "               2 Content={9999},\n"
    "               11 Content={2854 Content={3354}}}\n"
)


def make_assets(tmp_path: Path):
    item_dir = tmp_path / "items"
    item_dir.mkdir()
    Image.new("RGBA", (32, 32), SWORD_COLOR).save(item_dir / "3354.png")
    template = Image.new("RGBA", (120, 150), TEMPLATE_COLOR)
    blank = Image.new("RGBA", (32, 32), BLANK_COLOR)
    return template, blank, item_dir


def test_equipment_positions_count():
    assert len(EQUIPMENT_POSITIONS) == 10


def test_read_equipment_uses_top_level_items():
    inv = InventorySection.parse("10 Content={2854 Content={1}}, 1 Content={3354}, 12 Content={5}")
    assert read_equipment(inv) == [3354, None, None, None, None, None, None, None, None, 2854]


def test_read_equipment_without_inventory():
    assert read_equipment_from_text('Name = "Nobody"\n') == [None] * 10


def test_render_composites_sprites_and_blanks(tmp_path: Path, caplog):
    template, blank, item_dir = make_assets(tmp_path)

    with caplog.at_level(logging.WARNING):
        image = render([3354, 9999, None], template, blank, item_dir, "Bob")

    assert image.getpixel(EQUIPMENT_POSITIONS[0]) == SWORD_COLOR
    assert image.getpixel(EQUIPMENT_POSITIONS[1]) == BLANK_COLOR
    # only as many slots as given are drawn
    assert image.getpixel(EQUIPMENT_POSITIONS[2]) == TEMPLATE_COLOR
    assert image.getpixel((115, 5)) == TEMPLATE_COLOR
    assert "Item 9999 not found for player Bob" in caplog.text
    # the template itself is not modified
    assert template.getpixel(EQUIPMENT_POSITIONS[0]) == TEMPLATE_COLOR


def test_render_player_file(tmp_path: Path):
    template, blank, item_dir = make_assets(tmp_path)
    usr = tmp_path / "usr" / "42" / "bob.usr"
    usr.parent.mkdir(parents=True)
    usr.write_bytes(PLAYER.encode("cp1252"))

    out = render_player_file(usr, template, blank, item_dir, tmp_path / "out")

    assert out == tmp_path / "out" / "4242.png"
    with Image.open(out) as image:
        rendered = image.convert("RGBA")
    assert rendered.size == (120, 150)
    assert rendered.getpixel(EQUIPMENT_POSITIONS[0]) == SWORD_COLOR
    assert rendered.getpixel(EQUIPMENT_POSITIONS[9]) == BLANK_COLOR


def test_render_all_counts_failures(tmp_path: Path):
    template, blank, item_dir = make_assets(tmp_path)
    good = tmp_path / "good.usr"
    good.write_bytes(PLAYER.encode("cp1252"))
    no_id = tmp_path / "noid.usr"
    no_id.write_bytes(b'Name = "Ghost"\nInventory   = {}\n')
    broken = tmp_path / "broken.usr"
    broken.write_bytes(b"ID = 7\nInventory   = {1 Content={\n")

    rendered, failed = render_all([good, no_id, broken], template, blank, item_dir, tmp_path / "out", workers=2)

    assert (rendered, failed) == (1, 2)
    assert (tmp_path / "out" / "4242.png").exists()
    assert not (tmp_path / "out" / "7.png").exists()


def test_main_renders_directory(tmp_path: Path, capsys):
    template, blank, item_dir = make_assets(tmp_path)
    template.save(tmp_path / "template.png")
    blank.save(tmp_path / "blank.png")
    usr = tmp_path / "usr" / "42" / "bob.usr"
    usr.parent.mkdir(parents=True)
    usr.write_bytes(PLAYER.encode("cp1252"))

    code = render_equipment.main([
        "--usr-path", str(tmp_path / "usr"),
        "--item-dir", str(item_dir),
        "--template", str(tmp_path / "template.png"),
        "--blank", str(tmp_path / "blank.png"),
        "--output-dir", str(tmp_path / "out"),
        "--log-file", str(tmp_path / "log.txt"),
    ])

    assert code == 0
    assert (tmp_path / "out" / "4242.png").exists()
    assert "rendered 1/1" in capsys.readouterr().out
