from __future__ import annotations

import argparse
import importlib.metadata
import logging
from dataclasses import replace
from pathlib import Path

from .errors import WireBodyError

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="wirebody")
    sub = parser.add_subparsers(dest="cmd", required=True)

    sub.add_parser("version", help="Print wirebody version.")

    p_gen = sub.add_parser("gen", help="Generate client body types modules from a design file.")
    p_gen.add_argument("--design", required=True, help="Design file (.json, .msgpack or .mpk).")
    p_gen.add_argument("--out", required=True, help="Output root directory; one module directory per service.")
    p_gen.add_argument(
        "--gen-package",
        default=None,
        help="Package holding the service domain types (default: WIREBODY_GEN_PACKAGE or 'gen').",
    )
    p_gen.add_argument(
        "--runtime-module",
        default=None,
        help="Module imported by generated validators (default: WIREBODY_RUNTIME_MODULE or 'wirebody.runtime').",
    )
    p_gen.add_argument("-v", "--verbose", action="store_true", help="Log progress.")

    p_check = sub.add_parser("check", help="Load a design and run generation without writing files.")
    p_check.add_argument("--design", required=True, help="Design file (.json, .msgpack or .mpk).")
    p_check.add_argument("-v", "--verbose", action="store_true", help="Log progress.")

    args = parser.parse_args(argv)
    if args.cmd == "version":
        try:
            print(importlib.metadata.version("wirebody"))
        except importlib.metadata.PackageNotFoundError:
            # Source checkout without an installed distribution.
            print("0.0.0")
        return

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    from .config import default_options
    from .design import load_design
    from .generate import generate

    opts = default_options()
    if args.cmd == "gen":
        if args.gen_package:
            opts = replace(opts, gen_package=args.gen_package)
        if args.runtime_module:
            opts = replace(opts, runtime_module=args.runtime_module)

    try:
        design = load_design(args.design)
        files = generate(design, opts)
    except WireBodyError as e:
        raise SystemExit(f"wirebody: {e}") from None

    if args.cmd == "check":
        print(f"ok: {len(design.methods)} method(s), {len(files)} service(s)")
        return

    # Every service generated; only now touch the output directory.
    out_root = Path(args.out)
    for f in files:
        path = out_root / f.path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f.render(), encoding="utf-8")
        logger.info("wrote %s", path)
        print(str(path))


if __name__ == "__main__":
    main()
