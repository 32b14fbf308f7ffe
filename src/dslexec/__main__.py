import argparse
import importlib
import sys
import traceback
import types
from pathlib import Path

from .code import Script
from .core import Engine


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m dslexec",
        usage="python -m dslexec [-n MODULE]... [--full-traceback] <script.py>",
    )
    parser.add_argument("script")
    parser.add_argument(
        "-n",
        "--namespace",
        action="append",
        default=[],
        metavar="MODULE",
        help="module consulted for names the script does not define (repeatable, in order)",
    )
    parser.add_argument("--full-traceback", action="store_true")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args_list = sys.argv[1:] if argv is None else argv
    try:
        args = parser.parse_args(args_list)
    except SystemExit as exc:
        return int(exc.code)

    script_path = Path(args.script).resolve()
    if not script_path.is_file():
        print(f"dslexec: script not found: {script_path}", file=sys.stderr)
        return 2

    namespaces = []
    for name in args.namespace:
        try:
            namespaces.append(importlib.import_module(name))
        except ImportError as exc:
            print(f"dslexec: cannot import namespace {name!r}: {exc}", file=sys.stderr)
            return 2

    engine = Engine.from_options({"full_traceback": args.full_traceback})
    target = types.SimpleNamespace()
    try:
        result = engine.evaluate(target, namespaces, False, Script.from_file(script_path))
    except SystemExit as exc:
        code = exc.code
        if code is None:
            return 0
        if isinstance(code, int):
            return code
        print(code, file=sys.stderr)
        return 1
    if result.exception is not None:
        exc = result.exception
        traceback.print_exception(type(exc), exc, exc.__traceback__, file=sys.stderr)
        return 1
    if result.value is not None:
        print(repr(result.value))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
