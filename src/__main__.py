#!/usr/bin/env python3
"""
Command line front end: python -m irkeymap [-v] [-p NAME[=FALLBACK]] FILE...

Prints every keymap found in each file as JSON, or with --param the value of
one protocol parameter per keymap.
"""

import argparse
import json
import logging
import sys

from .keymap_model import KeymapError, free_keymap, keymap_param, parse_c_integer, parse_keyfile

logger = logging.getLogger("irkeymap")


def parse_cli(argv=None):
    parser = argparse.ArgumentParser("irkeymap", description="Remote-control keymap parser")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Report parsing progress on stderr"
    )
    parser.add_argument(
        "-p",
        "--param",
        metavar="NAME[=FALLBACK]",
        help="Print one protocol parameter per keymap instead of the whole keymap; "
        "FALLBACK is a C integer literal (42, 0x2a, 052, -1)",
    )
    parser.add_argument("files", nargs="+", metavar="FILE", help="Keymap files to parse")

    return parser.parse_args(argv)


def split_param(text):
    name, sep, fallback = text.partition("=")
    if not sep:
        return name, 0
    fallback = fallback.strip()
    if fallback.startswith("-"):
        return name, -parse_c_integer(fallback[1:])
    return name, parse_c_integer(fallback)


def main(argv=None, outfp=None):
    args = parse_cli(argv)
    outfp = outfp or sys.stdout

    logging.basicConfig(
        stream=sys.stderr,
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(message)s",
    )

    param = None
    if args.param:
        try:
            param = split_param(args.param)
        except ValueError:
            logger.error("invalid fallback in --param %s", args.param)
            return 1

    status = 0
    for filename in args.files:
        try:
            keymap = parse_keyfile(filename, args.verbose)
        except KeymapError as e:
            logger.error("%s", e)
            status = 1
            continue
        except OSError as e:
            logger.error("%s: %s", filename, e.strerror or e)
            status = 1
            continue

        if param is not None:
            name, fallback = param
            for km in keymap:
                print(
                    "%s\t%s\t%d" % (filename, km.protocol, keymap_param(km, name, fallback)),
                    file=outfp,
                )
        else:
            print(json.dumps([km.to_dict() for km in keymap], indent=2), file=outfp)

        free_keymap(keymap)

    return status


if __name__ == "__main__":
    sys.exit(main())
