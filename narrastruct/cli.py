"""
narrastruct command line.

Usage:
    # Confidence report for a Markdown file
    narrastruct analyze book.md

    # Extracted PDF text, with the navigation tree
    narrastruct analyze thesis.txt --format pdf --tree

    # Full result as JSON, replaying saved corrections
    narrastruct analyze book.md --json --profiles-dir corrections/

Exit codes:
    0  document confidence meets the threshold
    1  document confidence is below the threshold
    2  usage or IO error
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from narrastruct.analyzer import StructureAnalyzer
from narrastruct.config import AnalysisOptions
from narrastruct.corrections.profiles import CorrectionProfileStore
from narrastruct.exceptions import ConfigurationError
from narrastruct.models import DocumentFormat
from narrastruct.profiles import PROFILES
from narrastruct.reports import render_report
from narrastruct.tree import index_tree, render_tree

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_BELOW_THRESHOLD = 1
EXIT_ERROR = 2

SUFFIX_FORMATS = {
    ".md": DocumentFormat.MARKDOWN,
    ".markdown": DocumentFormat.MARKDOWN,
    ".pdf": DocumentFormat.PDF,
    ".epub": DocumentFormat.EPUB,
}


def detect_format(path: Path) -> DocumentFormat | None:
    """Format implied by the file suffix, or None when it is not recognised."""
    return SUFFIX_FORMATS.get(path.suffix.lower())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="narrastruct",
        description="Analyze document structure for narration",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze = subparsers.add_parser("analyze", help="Analyze a document and print a report")
    analyze.add_argument("path", type=Path, help="Path to a UTF-8 text file")
    analyze.add_argument(
        "--format",
        choices=[f.value for f in DocumentFormat],
        help="Document format (default: inferred from the file suffix)",
    )
    analyze.add_argument(
        "--threshold",
        type=float,
        default=0.7,
        help="Confidence threshold for a zero exit code (default: 0.7)",
    )
    analyze.add_argument("--tree", action="store_true", help="Also print the navigation tree")
    analyze.add_argument("--json", action="store_true", help="Print the full result as JSON")
    analyze.add_argument("--language", help="Document language (default: detected or 'en')")
    analyze.add_argument(
        "--profile",
        choices=[*sorted(PROFILES), "auto"],
        help="Analysis profile (default: 'default')",
    )
    analyze.add_argument(
        "--profiles-dir",
        type=Path,
        help="Directory of saved correction profiles to replay",
    )
    analyze.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    return run_analyze(args)


def run_analyze(args: argparse.Namespace) -> int:
    path: Path = args.path
    if not path.is_file():
        print(f"Error: File not found: {path}", file=sys.stderr)
        return EXIT_ERROR

    fmt = DocumentFormat.parse(args.format) if args.format else detect_format(path)
    if fmt is None:
        print(
            f"Error: Cannot infer the format of {path.name}; pass --format",
            file=sys.stderr,
        )
        return EXIT_ERROR

    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        print(f"Error: Cannot read {path}: {e}", file=sys.stderr)
        return EXIT_ERROR

    try:
        options = AnalysisOptions(
            confidence_threshold=args.threshold,
            language=args.language,
            profile=args.profile,
            apply_saved_corrections=args.profiles_dir is not None,
        )
        store = CorrectionProfileStore(args.profiles_dir) if args.profiles_dir else None
        analyzer = StructureAnalyzer(store=store)
        result = analyzer.analyze(content, fmt, options)
    except (ConfigurationError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR

    structure = result.document_structure
    if args.json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False, default=str))
    else:
        print(render_report(result.confidence_report, title=f"Structure: {path.name}"))
        for error in structure.processing_errors:
            print(f"Error: {error}")
        if args.tree and result.tree is not None:
            print(render_tree(index_tree(result.tree)))

    return EXIT_OK if result.meets_threshold else EXIT_BELOW_THRESHOLD


if __name__ == "__main__":
    sys.exit(main())
