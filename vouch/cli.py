#!/usr/bin/env python3
"""
Check @spec annotations in Python files without importing them.

Usage:
    vouch-check myfile.py
    vouch-check src/*.py --cfg 'debug, feature = "fast"'
    vouch-check myfile.py --verbose
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from .core.config import BuildConfig
from .core.errors import SpecError
from .scanner import SpecFunctionScanner
from .api_models import ScanReport


def print_report(report: ScanReport, verbose: bool = False) -> None:
    """Print formatted report"""
    print("\n" + "=" * 80)
    print(f"SPEC CHECK: {report.filename}")
    print("=" * 80)

    if not report.functions:
        print("⚠️  No @spec annotated functions found")
        return

    failed = len(report.errors)
    print(f"\nAnnotated functions: {len(report.functions)}")
    print(f"✅ Valid: {len(report.functions) - failed}")
    print(f"❌ Invalid: {failed}")

    print("\n" + "-" * 80)
    for info in report.functions:
        if info.valid:
            print(f"✅ {info.qualname}:{info.line_number}")
            if verbose:
                spec = info.specification
                print(f"   requires {len(spec.preconditions)}, maintains {len(spec.invariants)}, "
                      f"captures {len(spec.captures)}, ensures {len(spec.postconditions)}")
            continue

        error = info.error
        where = f"{error.line}:{error.column}" if error.in_file else f"annotation {error.line}:{error.column}"
        print(f"❌ {info.qualname}:{info.line_number} - {error.message} ({where})")
        if verbose and error.rendered:
            for line in error.rendered.splitlines():
                print(f"   {line}")

    print("\n" + "=" * 80)


def build_config(settings: Optional[str]) -> BuildConfig:
    config = BuildConfig.defaults()
    if settings:
        config = config.with_settings(settings)
    return config


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Check @spec annotations in Python files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Check one file
    vouch-check examples/bank_account.py

    # Check with extra build settings
    vouch-check examples/bank_account.py --cfg 'expensive'
        """
    )

    parser.add_argument("files", nargs="+", help="Python files to check")
    parser.add_argument("--cfg", help="Build settings, e.g. 'debug, feature = \"fast\"'")
    parser.add_argument("--no-compile", action="store_true",
                        help="Only parse annotations; skip compiling conditions")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    args = parser.parse_args(argv)

    try:
        config = build_config(args.cfg)
    except SpecError as e:
        print(f"❌ Error: invalid --cfg: {e}")
        return 2

    scanner = SpecFunctionScanner(config=config, check_expressions=not args.no_compile)

    invalid = 0
    for file_name in args.files:
        if not Path(file_name).exists():
            print(f"❌ Error: File not found: {file_name}")
            return 1
        try:
            report = scanner.parse_file(file_name)
        except SyntaxError as e:
            print(f"❌ Error: {file_name} is not valid Python: {e}")
            invalid += 1
            continue
        print_report(report, args.verbose)
        invalid += len(report.errors)

    return 0 if invalid == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
