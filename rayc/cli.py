"""rayc CLI — compile a .ray file to a FASM listing next to it."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

from .ast import to_dict
from .codegen import generate
from .errors import CompileError
from .parse import parse
from .tokens import tokenize

LOGGER = logging.getLogger("rayc.cli")

PHASES: list[str] = ["tokens", "parse"]

USAGE: str = """\
rayc [OPTIONS] FILE

Compile a Ray source file to x86-64 FASM assembly. The listing is written
next to FILE, with the same base name and an .asm extension.

Options:
  --stop-at PHASE     Print the result of a phase instead of compiling:
                      tokens, parse
  -o, --output FILE   Write the listing to FILE
  -v, --verbose       Log compiler phases to stderr
  --help              Show this help message
"""


def main(argv: list[str] | None = None) -> int:
    args = argv if argv is not None else sys.argv[1:]
    filepath: str = ""
    output_file: str | None = None
    stop_at: str | None = None
    verbose = False
    i = 0
    while i < len(args):
        arg = args[i]
        if arg == "--help" or arg == "-h":
            print(USAGE, end="")
            return 0
        elif arg == "--verbose" or arg == "-v":
            verbose = True
            i += 1
        elif arg == "--stop-at" or arg == "-o" or arg == "--output":
            if i + 1 >= len(args):
                print("rayc: " + arg + " requires an argument", file=sys.stderr)
                return 2
            if arg == "--stop-at":
                stop_at = args[i + 1]
            else:
                output_file = args[i + 1]
            i += 2
        elif arg.startswith("-"):
            print("rayc: unknown flag '" + arg + "'", file=sys.stderr)
            return 2
        elif filepath == "":
            filepath = arg
            i += 1
        else:
            print("rayc: unexpected argument '" + arg + "'", file=sys.stderr)
            return 2
    if filepath == "":
        print("rayc: missing file argument", file=sys.stderr)
        return 2
    if stop_at is not None and stop_at not in PHASES:
        print("rayc: unknown phase '" + stop_at + "'", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s: %(message)s",
    )

    try:
        with open(filepath, "rb") as f:
            raw = f.read()
    except FileNotFoundError:
        print("rayc: " + filepath + ": No such file or directory", file=sys.stderr)
        return 1
    except OSError as e:
        print("rayc: " + filepath + ": " + str(e), file=sys.stderr)
        return 1
    try:
        source = raw.decode("utf-8")
    except ValueError:
        print("rayc: " + filepath + ": invalid utf-8", file=sys.stderr)
        return 1

    try:
        tokens = tokenize(source)
        if stop_at == "tokens":
            for tok in tokens:
                print(repr(tok))
            return 0
        nodes = parse(tokens)
        if stop_at == "parse":
            print(json.dumps(to_dict(nodes), indent=2))
            return 0
        listing = generate(nodes)
    except CompileError as e:
        print("rayc: " + type(e).__name__ + ": " + str(e), file=sys.stderr)
        return 1

    source_path = Path(filepath)
    output = Path(output_file) if output_file is not None else source_path.with_suffix(".asm")
    if output.resolve() == source_path.resolve():
        print("rayc: output would overwrite '" + filepath + "'", file=sys.stderr)
        return 1
    try:
        output.write_text(listing)
    except OSError as e:
        print("rayc: cannot write '" + str(output) + "': " + str(e), file=sys.stderr)
        return 1
    LOGGER.debug("wrote %s", output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
