"""Command line entry point: ``md-to-docx source.md target.docx``."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from docx_manuscript.config import ConversionConfig, load_config
from docx_manuscript.convert import convert_file
from docx_manuscript.errors import ConversionError
from docx_manuscript.log import set_verbose


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="md-to-docx",
        description="Convert a Markdown manuscript into a DOCX styled by the house template",
    )
    parser.add_argument("source", type=Path, help="Input Markdown file")
    parser.add_argument("target", type=Path, help="Output DOCX file")
    parser.add_argument("--template", type=Path, default=None,
                        help="Reference template (.docx/.dotx file or unpacked directory)")
    parser.add_argument("--config", type=Path, default=None, help="YAML configuration file")
    parser.add_argument("--strict-styles", dest="strict_styles", action="store_true", default=None,
                        help="Copy content into the template, mapping styles by name")
    parser.add_argument("--mml2omml-xsl", dest="mml2omml_xsl", type=Path, default=None,
                        help="MathML to OMML stylesheet (e.g. Office's MML2OMML.XSL)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    return parser


def make_config(args: argparse.Namespace) -> ConversionConfig:
    """Defaults < ``--config`` file < command line flags."""
    config = load_config(args.config)
    overrides = {"strict_styles": args.strict_styles, "mml2omml_xsl": args.mml2omml_xsl}
    if args.template is not None:
        overrides["template_directory"] = args.template.parent
        overrides["template_name"] = args.template.name
    return config.with_overrides(**overrides)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    set_verbose(args.verbose)

    if not args.source.is_file():
        print(f"Error: Input file not found: {args.source}", file=sys.stderr)
        return 1

    try:
        convert_file(args.source, args.target, make_config(args))
    except ConversionError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
