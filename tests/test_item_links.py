from __future__ import annotations

from core.item_links import convert_links, parse_item_id, render_item

URL = "http://test.com?itemid="
MASK_LEGACY = "\x1200046F000000000000000000000000000000000000000Mask of Tinkering\x12"
MASK = "\x1200046F00000000000000000000000000000000000000000014D2720CMask of Tinkering\x12"


def test_legacy_link_with_trailing_text() -> None:
    assert convert_links(f"{MASK_LEGACY} 0.8.0 style", URL) == (
        "http://test.com?itemid=1135 (Mask of Tinkering) 0.8.0 style"
    )


def test_new_link() -> None:
    assert convert_links(MASK, URL) == "http://test.com?itemid=1135 (Mask of Tinkering)"


def test_link_inside_console_line_is_trimmed() -> None:
    line = (
        "\r> \b\bShin says ooc, '\x1207A50C000000000000000000000000000000000000000000CC2F1766"
        "Infused 2 Handed Damage\x12'\n"
    )
    assert convert_links(line, URL) == (
        "> \b\bShin says ooc, 'http://test.com?itemid=501004 (Infused 2 Handed Damage)'"
    )


def test_trailing_newline_removed_after_conversion() -> None:
    text = "\x1200F406000000000000000000000000000000000000000000B519D6B0Ring of Prophetic Visions\x12\n"
    assert convert_links(text, URL) == "http://test.com?itemid=62470 (Ring of Prophetic Visions)"


def test_multiple_links() -> None:
    text = f"multiple link test {MASK} and second {MASK}"
    assert convert_links(text, URL) == (
        "multiple link test http://test.com?itemid=1135 (Mask of Tinkering)"
        " and second http://test.com?itemid=1135 (Mask of Tinkering)"
    )


def test_legacy_double_link_with_asterisks() -> None:
    token = "\x1200046F000000000000000000000000000000000000000Mask of Tinkering**\x12"
    text = f"{token} 0.8.0 style double link {token}"
    assert convert_links(text, URL) == (
        "http://test.com?itemid=1135 (Mask of Tinkering**) 0.8.0 style double link"
        " http://test.com?itemid=1135 (Mask of Tinkering**)"
    )


def test_names_with_punctuation() -> None:
    spell = "\x120CA2150000000000000000000000000000000000000000002A46AF7CSpell: Test\x12"
    cestus = "\x1209756800000000000000000000000000000000000000000048F274D9Magmaband of Cestus Dei +1\x12"
    assert convert_links(spell, URL) == "http://test.com?itemid=827925 (Spell: Test)"
    assert convert_links(cestus, URL) == "http://test.com?itemid=619880 (Magmaband of Cestus Dei +1)"


def test_text_without_links_is_unchanged() -> None:
    assert convert_links("no url test", URL) == "no url test"
    assert convert_links("  padded  ", URL) == "  padded  "


def test_unpaired_sentinel_left_in_place() -> None:
    text = "broken \x1200046F link"
    assert convert_links(text, URL) == text


def test_without_prefix_uses_asterisks() -> None:
    assert convert_links(MASK, "") == "*Mask of Tinkering*"


def test_non_hex_id_uses_asterisks() -> None:
    assert parse_item_id("ZZZZZZ") == 0
    assert render_item(0, "Cloth Cap", URL) == "*Cloth Cap*"
    token = "\x12ZZZZZZ00000000000000000000000000000000000000000014D2720CCloth Cap\x12"
    assert convert_links(token, URL) == "*Cloth Cap*"
