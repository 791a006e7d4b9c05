#!/usr/bin/env python3
"""
Tests for the keymap model helpers.
"""

import json

import pytest

from irkeymap import (
    Keymap,
    KeymapError,
    KeymapParser,
    ProtocolParam,
    RawEntry,
    ScancodeEntry,
    free_keymap,
    is_toml_keymap,
    keymap_param,
    parse_c_integer,
)


@pytest.mark.parametrize(
    "text, value",
    [
        ("0", 0),
        ("42", 42),
        ("0x1a", 26),
        ("0X1A", 26),
        ("017", 15),
        ("08", 0),
        ("0x", 0),
        ("  +7", 7),
        ("12abc", 12),
        ("0xffffffffffffffff", 0xFFFFFFFFFFFFFFFF),
    ],
)
def test_parse_c_integer(text: str, value: int)->None:
    assert parse_c_integer(text) == value


@pytest.mark.parametrize("text", ["", "abc", "-1", "x10", "0x10000000000000000"])
def test_parse_c_integer_invalid(text: str)->None:
    with pytest.raises(ValueError):
        parse_c_integer(text)


@pytest.mark.parametrize(
    "filename, expected",
    [
        ("rc6_mce.toml", True),
        ("RC6_MCE.TOML", True),
        ("dir.toml/keys", False),
        ("keys.tom", False),
        ("toml", False),
        (".toml", True),
        ("rc6_mce", False),
    ],
)
def test_is_toml_keymap(filename: str, expected: bool)->None:
    assert is_toml_keymap(filename) is expected


def test_keymap_param_lookup()->None:
    keymap = Keymap(protocol="nec", params=[ProtocolParam("repeat_period", 110), ProtocolParam("Tolerance", 3)])

    assert keymap_param(keymap, "repeat_period", 0) == 110
    assert keymap_param(keymap, "Tolerance", 0) == 3
    assert keymap_param(keymap, "tolerance", -1) == -1
    assert keymap_param(keymap, "missing", 42) == 42


def test_keymap_param_ignores_chained_keymaps()->None:
    tail = Keymap(protocol="rc5", params=[ProtocolParam("repeat_period", 90)])
    head = Keymap(protocol="nec", next=tail)

    assert keymap_param(head, "repeat_period", 1) == 1
    assert keymap_param(tail, "repeat_period", 1) == 90


def test_keymap_iterates_chain()->None:
    third = Keymap(protocol="c")
    second = Keymap(protocol="b", next=third)
    first = Keymap(protocol="a", next=second)

    assert [km.protocol for km in first] == ["a", "b", "c"]
    assert [km.protocol for km in third] == ["c"]


def test_free_keymap_releases_chain()->None:
    keymap = KeymapParser().parse_toml_text(
        '[[protocols]]\nprotocol = "nec"\nrepeat_period = 1\n[protocols.scancodes]\n1 = "KEY_1"\n'
        '[[protocols]]\nprotocol = "raw"\nraw = [{keycode = "KEY_2", raw = [5]}]\n',
        "two.toml",
    )
    nodes = list(keymap)
    assert len(nodes) == 2

    free_keymap(keymap)

    for km in nodes:
        assert km.scancodes == []
        assert km.raw == []
        assert km.params == []
        assert km.next is None


def test_free_keymap_none()->None:
    free_keymap(None)


def test_failed_parse_returns_nothing()->None:
    parser = KeymapParser()
    keymap = None
    with pytest.raises(KeymapError):
        keymap = parser.parse_plain_text("# table demo type nec\n1 KEY_1\nbroken\n")
    assert keymap is None
    free_keymap(keymap)


def test_to_dict_is_json_ready()->None:
    keymap = Keymap(
        name="demo",
        protocol="raw",
        raw=[RawEntry("KEY_UP", [100, 200, 100])],
        params=[ProtocolParam("rx_timeout", 8000)],
        next=Keymap(protocol="nec", scancodes=[ScancodeEntry(0x1a, "KEY_UP")]),
    )

    data = keymap.to_dict()
    assert data == {
        "name": "demo",
        "protocol": "raw",
        "variant": None,
        "scancodes": [],
        "raw": [{"keycode": "KEY_UP", "raw": [100, 200, 100]}],
        "params": {"rx_timeout": 8000},
    }
    assert json.loads(json.dumps(data)) == data
    assert keymap.next.to_dict()["scancodes"] == [{"scancode": 0x1a, "keycode": "KEY_UP"}]
