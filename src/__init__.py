"""
Remote-control keymap parser package for plain text and TOML keymap files.
"""

from .keymap_model import (
    KeymapParser,
    KeymapError,
    Keymap,
    ScancodeEntry,
    RawEntry,
    ProtocolParam,
    parse_keyfile,
    keymap_param,
    free_keymap,
    is_toml_keymap,
    parse_c_integer
)

__all__ = [
    "KeymapParser",
    "KeymapError",
    "Keymap",
    "ScancodeEntry",
    "RawEntry",
    "ProtocolParam",
    "parse_keyfile",
    "keymap_param",
    "free_keymap",
    "is_toml_keymap",
    "parse_c_integer"
]
