#!/usr/bin/env python3
"""
Remote-control keymap parser.
Parses and holds:
- Plain text keymaps (ir-keytable 1.14 and earlier format)
- TOML keymaps with one or more [[protocols]] blocks
- Scancode -> keycode tables
- Raw pulse/space definitions for the "raw" protocol
- Integer protocol parameters (e.g. repeat period, tolerances)

Keycodes are kept as the strings found in the file; they are not checked
against any list of known keys, and neither are protocol names.

Usage:
    keymap = parse_keyfile("rc6_mce.toml")
    for km in keymap:
        print(km.protocol, len(km.scancodes))
    print(keymap_param(keymap, "repeat_period", 0))
    # Export to JSON-like dict
    import json
    print(json.dumps([km.to_dict() for km in keymap], indent=2))
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Iterator, TextIO
import errno
import io
import logging
from pathlib import Path

import tomli

logger = logging.getLogger(__name__)

TOML_SUFFIX = ".toml"
RAW_PROTOCOL = "raw"
RAW_VALUE_MAX = 0xFFFF
SCANCODE_MAX = 0xFFFFFFFFFFFFFFFF

RESERVED_KEYS = ("protocol", "variant", "name", "raw", "scancodes")

# strtok() delimiter sets of the plain text format
HEADER_DELIMS = "\n\t =:"
TABLE_DELIMS = "\n, "
TYPE_DELIMS = " ,\n"
SCANCODE_DELIMS = "\n\t =:"
KEYCODE_DELIMS = "\n\t =:("


# --------------------------
# Errors
# --------------------------

class KeymapError(ValueError):
    """
    Raised when a keymap file is malformed.

    Attributes:
        filename: Name of the offending file
        line: 1-based line number for plain text keymaps, None otherwise
        errno: Always errno.EINVAL, for callers that report process-style codes
    """
    def __init__(self, message: str, filename: str | None = None, line: int | None = None) -> None:
        super().__init__(message)
        self.filename = filename
        self.line = line
        self.errno = errno.EINVAL


# --------------------------
# Utilities
# --------------------------

def parse_c_integer(text: str) -> int:
    """
    Convert a C integer literal to an unsigned integer, choosing the base
    from its prefix the way strtoul(text, NULL, 0) does.

    Args:
        text: Literal such as "0x1a", "017" or "42"

    Returns:
        The parsed value. Characters after the longest valid prefix are ignored.

    Raises:
        ValueError: If no digits are found, the literal is negative, or the
            value does not fit in 64 bits

    Example:
        >>> parse_c_integer("0x1A")
        26
        >>> parse_c_integer("017")
        15
        >>> parse_c_integer("12abc")
        12
    """
    s = text.lstrip(" \t\n\r\f\v")
    if s.startswith("-"):
        raise ValueError(f"negative value {text!r}")
    if s.startswith("+"):
        s = s[1:]

    if s[:2].lower() == "0x" and s[2:3] and s[2] in "0123456789abcdefABCDEF":
        base, digits, s = 16, "0123456789abcdefABCDEF", s[2:]
    elif s.startswith("0"):
        base, digits = 8, "01234567"
    else:
        base, digits = 10, "0123456789"

    end = 0
    while end < len(s) and s[end] in digits:
        end += 1
    if end == 0:
        raise ValueError(f"invalid integer literal {text!r}")

    value = int(s[:end], base)
    if value > SCANCODE_MAX:
        raise ValueError(f"value {text!r} out of range")
    return value

def is_toml_keymap(filename: str | Path) -> bool:
    """
    Tell whether a keymap file should be read as TOML.

    Only the name is inspected: the last five characters must equal
    ".toml", ignoring case. Everything else is treated as plain text.

    Example:
        >>> is_toml_keymap("rc6_mce.TOML")
        True
        >>> is_toml_keymap("rc6_mce")
        False
    """
    name = str(filename)
    return len(name) >= len(TOML_SUFFIX) and name[-len(TOML_SUFFIX):].lower() == TOML_SUFFIX

def is_toml_integer(value: Any) -> bool:
    # bool is a subclass of int, but a TOML boolean is not a number
    return isinstance(value, int) and not isinstance(value, bool)


class LineTokenizer:
    """
    Splits a line the way successive strtok() calls do.

    Each call to next() may use a different delimiter set: leading
    delimiters are skipped, the token runs up to the next delimiter and that
    single delimiter is consumed.
    """
    def __init__(self, line: str) -> None:
        self.line = line
        self.pos = 0

    def next(self, delims: str) -> str | None:
        s, pos = self.line, self.pos
        while pos < len(s) and s[pos] in delims:
            pos += 1
        if pos >= len(s):
            self.pos = pos
            return None

        start = pos
        while pos < len(s) and s[pos] not in delims:
            pos += 1
        token = s[start:pos]
        self.pos = pos + 1
        return token


# --------------------------
# Dataclasses for keymap model
# --------------------------

@dataclass
class ScancodeEntry:
    """
    A single scancode to keycode mapping.

    Attributes:
        scancode: Unsigned scancode value, zero is allowed
        keycode: Keycode name, e.g. "KEY_UP"
    """
    scancode: int
    keycode: str

@dataclass
class RawEntry:
    """
    A pulse/space timing definition for the raw protocol.

    Attributes:
        keycode: Keycode name sent when the timing is matched
        raw: Odd number of timings, each in 1..65535
    """
    keycode: str
    raw: list[int] = field(default_factory=list)

@dataclass
class ProtocolParam:
    name: str
    value: int

@dataclass
class Keymap:
    """
    Keymap for one protocol found in a keymap file.

    A file declaring several protocols yields several Keymap nodes linked
    through `next`. The head is always the first protocol declared and owns
    the rest of the chain.
    """
    name: str | None = None
    protocol: str | None = None
    variant: str | None = None

    scancodes: list[ScancodeEntry] = field(default_factory=list)
    raw: list[RawEntry] = field(default_factory=list)
    params: list[ProtocolParam] = field(default_factory=list)

    next: Keymap | None = field(default=None, repr=False)

    def __iter__(self) -> Iterator[Keymap]:
        km: Keymap | None = self
        while km is not None:
            yield km
            km = km.next

    def to_dict(self) -> dict[str, Any]:
        """Return this node (not the rest of the chain) as plain data."""
        return {
            "name": self.name,
            "protocol": self.protocol,
            "variant": self.variant,
            "scancodes": [{"scancode": se.scancode, "keycode": se.keycode} for se in self.scancodes],
            "raw": [{"keycode": re.keycode, "raw": list(re.raw)} for re in self.raw],
            "params": {p.name: p.value for p in self.params},
        }


def keymap_param(keymap: Keymap, name: str, fallback: int) -> int:
    """
    Look up an integer protocol parameter.

    Only the parameters of `keymap` itself are searched, never those of the
    keymaps chained after it.

    Args:
        keymap: Keymap to search
        name: Exact parameter name
        fallback: Value returned when the parameter is absent

    Returns:
        The stored value, or `fallback`

    Example:
        >>> keymap_param(keymap, "repeat_period", 125)
        125
    """
    for param in keymap.params:
        if param.name == name:
            return param.value
    return fallback

def free_keymap(keymap: Keymap | None) -> None:
    """
    Release a keymap chain: every owned list is emptied and every node is
    unlinked from its successor. Passing None does nothing.
    """
    km = keymap
    while km is not None:
        km.scancodes.clear()
        km.raw.clear()
        km.params.clear()
        km.next, km = None, km.next


# --------------------------
# Plain text format
# --------------------------

def parse_header_line(tok: LineTokenizer, keymap: Keymap) -> bool:
    """
    Apply a "# table <name> type <proto>[,<proto>...]" header to `keymap`.

    Every protocol after the first gets a new Keymap appended to the chain.

    Returns:
        False when the header is malformed
    """
    word = tok.next(HEADER_DELIMS)
    if word is None:
        return False

    tail = keymap
    while word is not None:
        if word == "table":
            value = tok.next(TABLE_DELIMS)
            if value is None:
                return False
            keymap.name = value
        elif word == "type":
            value = tok.next(TYPE_DELIMS)
            if value is None:
                return False
            while value is not None:
                if keymap.protocol is None:
                    keymap.protocol = value
                else:
                    while tail.next is not None:
                        tail = tail.next
                    tail.next = Keymap(protocol=value)
                value = tok.next(TYPE_DELIMS)
        else:
            return False
        word = tok.next(HEADER_DELIMS)
    return True

def parse_data_line(tok: LineTokenizer) -> ScancodeEntry | None:
    """Parse a "[scancode] <value> <keycode>" line, None when malformed."""
    scancode = tok.next(SCANCODE_DELIMS)
    if scancode is None:
        return None
    if scancode.lower() == "scancode":
        scancode = tok.next(SCANCODE_DELIMS)
        if scancode is None:
            return None

    keycode = tok.next(KEYCODE_DELIMS)
    if keycode is None:
        return None

    try:
        value = parse_c_integer(scancode)
    except ValueError:
        return None
    return ScancodeEntry(scancode=value, keycode=keycode)


# --------------------------
# TOML format
# --------------------------

class TomlKeymapBuilder:
    """
    Translates the tables tomli produced for one keymap file into a Keymap
    chain. The first failing check raises KeymapError.
    """
    def __init__(self, filename: str, verbose: bool = False) -> None:
        self.filename = filename
        self.verbose = verbose

    def error(self, message: str) -> KeymapError:
        return KeymapError(f"{self.filename}: {message}", filename=self.filename)

    def build(self, root: dict[str, Any]) -> Keymap:
        protocols = root.get("protocols")
        if not isinstance(protocols, list):
            raise self.error("missing [protocols] section")
        if not protocols:
            raise self.error("no protocols found")

        keymaps: list[Keymap] = []
        for index, proot in enumerate(protocols, start=1):
            if not isinstance(proot, dict):
                raise self.error(f"protocol entry {index} is not a table")
            keymaps.append(self.build_protocol(proot))

        for km, following in zip(keymaps, keymaps[1:]):
            km.next = following
        return keymaps[0]

    def optional_string(self, proot: dict[str, Any], key: str) -> str | None:
        value = proot.get(key)
        if value is None:
            return None
        if not isinstance(value, str):
            raise self.error(f"bad value `{value}' for {key}")
        return value or None

    def build_protocol(self, proot: dict[str, Any]) -> Keymap:
        km = Keymap()

        protocol = proot.get("protocol")
        if protocol is None:
            raise self.error("protocol missing")
        if not isinstance(protocol, str) or not protocol:
            raise self.error(f"bad value `{protocol}' for protocol")
        km.protocol = protocol
        have_raw_protocol = protocol == RAW_PROTOCOL

        km.variant = self.optional_string(proot, "variant")
        km.name = self.optional_string(proot, "name")

        if "raw" in proot:
            if "scancodes" in proot:
                raise self.error("cannot have both [raw] and [scancodes] sections")
            if not have_raw_protocol:
                raise self.error("keymap with raw entries must have raw protocol")
            km.raw = self.build_raw(proot["raw"])
            if not km.raw:
                raise self.error("keymap with raw protocol must have raw entries")
        elif have_raw_protocol:
            raise self.error("keymap with raw protocol must have raw entries")

        for key, value in proot.items():
            if key in RESERVED_KEYS or not is_toml_integer(value):
                continue
            km.params.append(ProtocolParam(name=key, value=value))
            if self.verbose:
                logger.info("%s: protocol parameter %s=%d", self.filename, key, value)

        scancodes = proot.get("scancodes")
        if scancodes is None:
            if self.verbose:
                logger.info("%s: no [protocols.scancodes] section", self.filename)
            return km
        if not isinstance(scancodes, dict):
            raise self.error(f"bad value `{scancodes}' for scancodes")

        for scancode, keycode in scancodes.items():
            try:
                value = parse_c_integer(scancode)
            except ValueError:
                raise self.error(f"invalid scancode `{scancode}'") from None
            if not isinstance(keycode, str) or not keycode:
                raise self.error(f"bad value `{keycode}' for keycode")
            km.scancodes.append(ScancodeEntry(scancode=value, keycode=keycode))

        return km

    def build_raw(self, raw: Any) -> list[RawEntry]:
        if not isinstance(raw, list):
            raise self.error(f"bad value `{raw}' for raw")

        entries: list[RawEntry] = []
        for index, entry in enumerate(raw, start=1):
            if not isinstance(entry, dict):
                raise self.error(f"raw entry {index} is not a table")

            keycode = entry.get("keycode")
            if keycode is None:
                raise self.error(f"invalid keycode for raw entry {index}")
            if not isinstance(keycode, str) or not keycode:
                raise self.error(f"bad value `{keycode}' for keycode")

            timings = entry.get("raw")
            if not isinstance(timings, list):
                raise self.error(f"missing raw array for entry {index}")
            if len(timings) % 2 == 0:
                raise self.error(f"raw array must have odd length rather than {len(timings)}")

            values: list[int] = []
            for v in timings:
                if not is_toml_integer(v) or v == 0:
                    raise self.error(f"incorrect raw value `{v}'")
                # sign only tells pulse from space
                if abs(v) > RAW_VALUE_MAX:
                    raise self.error(f"raw value {v} out of range")
                values.append(abs(v))

            entries.append(RawEntry(keycode=keycode, raw=values))
        return entries


# --------------------------
# Top-level parser
# --------------------------

class KeymapParser:
    """
    Reads keymap files in either supported format.

    The file name picks the format (see is_toml_keymap). A successful parse
    returns the head of a Keymap chain; a malformed file raises KeymapError
    and nothing partially built is returned. Errors opening or reading the
    file propagate as OSError.
    """
    def __init__(self, verbose: bool = False) -> None:
        self.verbose = verbose

    def parse_file(self, path: str | Path) -> Keymap:
        """
        Parse a keymap file from disk.

        Args:
            path: Path to the keymap file

        Returns:
            Head of the Keymap chain

        Raises:
            KeymapError: If the file is malformed
            OSError: If the file cannot be opened or read
        """
        filename = str(path)
        if is_toml_keymap(filename):
            if self.verbose:
                logger.info("Parsing %s keycode file as toml", filename)
            with open(filename, "rb") as fp:
                return self.parse_toml(fp, filename)

        if self.verbose:
            logger.info("Parsing %s keycode file as plain text", filename)
        with open(filename, "r", encoding="utf-8", errors="ignore") as fp:
            return self.parse_plain(fp, filename)

    def parse_plain(self, fp: TextIO, filename: str) -> Keymap:
        keymap = Keymap()
        for line_no, line in enumerate(fp, start=1):
            s = line.lstrip(" \t")
            tok = LineTokenizer(s)

            if line_no == 1 and s.startswith("#"):
                tok.pos = 1
                if not parse_header_line(tok, keymap):
                    raise KeymapError(f"Invalid parameter on line {line_no} of {filename}",
                                      filename=filename, line=line_no)
                continue

            if not s.strip() or s.startswith("#"):
                continue

            entry = parse_data_line(tok)
            if entry is None:
                raise KeymapError(f"Invalid parameter on line {line_no} of {filename}",
                                  filename=filename, line=line_no)
            keymap.scancodes.append(entry)

        return keymap

    def parse_toml(self, fp: BinaryIO, filename: str) -> Keymap:
        try:
            root = tomli.load(fp)
        except tomli.TOMLDecodeError as e:
            raise KeymapError(f"{filename}: failed to parse toml: {e}", filename=filename) from e
        return TomlKeymapBuilder(filename, self.verbose).build(root)

    def parse_plain_text(self, text: str, filename: str = "<string>") -> Keymap:
        return self.parse_plain(io.StringIO(text), filename)

    def parse_toml_text(self, text: str, filename: str = "<string>") -> Keymap:
        return self.parse_toml(io.BytesIO(text.encode("utf-8")), filename)


def parse_keyfile(filename: str | Path, verbose: bool = False) -> Keymap:
    """
    Parse a keymap file, choosing plain text or TOML by its suffix.

    Args:
        filename: Path to the keymap file
        verbose: Log progress messages at INFO level

    Returns:
        Head of the Keymap chain
    """
    return KeymapParser(verbose=verbose).parse_file(filename)
