#!/usr/bin/env python3
"""
Rust/Swift Bridge Generator

Parses the `#[swift_bridge::bridge]` modules of a Rust source file and writes:
  1. SwiftBridgeCore.h / SwiftBridgeCore.swift (runtime support)
  2. <crate>/<crate>.h (C header for the Swift toolchain)
  3. <crate>/<crate>.swift (Swift wrappers)
  4. <crate>/<module>.rs (Rust glue, one file per module)

Usage:
    python generate_bindings.py src/lib.rs --output-dir generated/
    python generate_bindings.py src/lib.rs --features async,tokio --crate-name my_crate
    python generate_bindings.py src/lib.rs --output-dir generated/ --check
"""

import argparse
import logging
import sys
import time
from pathlib import Path

# Add parent directory to path so bridgegen package can be found
sys.path.insert(0, str(Path(__file__).parent.parent))

from bridgegen import BridgeError, BridgeParser, CodegenConfig, write_bridge_dir


def main(argv=None) -> int:
    start_time = time.perf_counter()

    parser = argparse.ArgumentParser(description="Generate Swift bridges from Rust bridge modules")
    parser.add_argument("source_file", nargs="?", help="Rust source file (positional)")
    parser.add_argument("--source", help="Rust source file (alternative)")
    parser.add_argument("--output-dir", "-o", default="generated", help="Bridge output directory")
    parser.add_argument("--crate-name", "-n", default="", help="Crate name (defaults to the file stem)")
    parser.add_argument("--features", default="", help="Enabled crate features, comma separated")
    parser.add_argument("--check", action="store_true", help="Fail with a diff if outputs are stale")
    parser.add_argument("--dry-run", action="store_true", help="Generate without writing files")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    # Support both positional and --source argument
    source_file = args.source_file or args.source
    if not source_file:
        parser.error("source file is required (positional or --source)")

    source_path = Path(source_file)
    crate_name = (args.crate_name or source_path.stem).replace("-", "_")
    config = CodegenConfig.from_feature_list(args.features)

    try:
        modules = BridgeParser(source_path.read_text(encoding="utf-8")).parse()
        paths, stale = write_bridge_dir(Path(args.output_dir), crate_name, modules, config,
                                        check=args.check, dry_run=args.dry_run)
    except BridgeError as e:
        print(f"{source_path}:{e.line}: {e.msg}", file=sys.stderr)
        return 1

    if not modules:
        logging.getLogger(__name__).warning("no bridge modules found in %s", source_path)

    if args.check:
        if stale:
            print(f"{stale} generated file(s) are out of date", file=sys.stderr)
            return 1
    elif not args.dry_run:
        for path in paths:
            print(f"Generated: {path}")

    elapsed = time.perf_counter() - start_time
    print(f"Generation completed in {elapsed*1000:.2f} ms")
    return 0


if __name__ == "__main__":
    sys.exit(main())
