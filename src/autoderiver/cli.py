"""CLI entrypoint for annotation and derivation exports."""

from __future__ import annotations

import argparse
import ast
import logging
from pathlib import Path
import sys
from typing import Any, Sequence

from autoderiver.errors import AutoderiverError, format_error_chain
from autoderiver.export.preset import DEFAULT_PRESET_SOURCE, PresetTextFetcher
from autoderiver.io.text_io import write_text
from autoderiver.models import DerivationScheme, VariantPolicy
from autoderiver.phonology.repository import PositionRepository
from autoderiver.phonology.variants import VariantRepository
from autoderiver.pipeline import DEFAULT_ARTICLE, ExportMode, load_scheme, run_export


def _resolve_default_dictionary_path() -> Path:
    """Resolve default dictionary path from project layout.

    Returns:
        ``data/dictionary.tsv`` when present, else project-root ``dictionary.tsv``.
    """

    cwd_data = Path("data") / "dictionary.tsv"
    if cwd_data.exists():
        return cwd_data
    return Path("dictionary.tsv")


def eval_str(text: str) -> Any:
    """Evaluate an option value as a Python literal, keeping bare words as strings."""

    try:
        return ast.literal_eval(text)
    except (SyntaxError, ValueError):
        return text


def parse_option(text: str) -> tuple[str | None, str, Any]:
    """Split ``[SCHEME:]NAME=VALUE`` into its parts.

    Raises:
        argparse.ArgumentTypeError: If there is no ``=`` or no name.
    """

    key, sep, raw_value = text.partition("=")
    if not sep or not key.strip():
        raise argparse.ArgumentTypeError(f"expected [SCHEME:]NAME=VALUE, got '{text}'")
    scheme_id, colon, name = key.partition(":")
    if not colon:
        scheme_id, name = "", key
    return (scheme_id.strip() or None), name.strip(), eval_str(raw_value.strip())


def build_arg_parser() -> argparse.ArgumentParser:
    """Construct CLI argument parser.

    Returns:
        Configured parser for the export command.
    """

    parser = argparse.ArgumentParser(
        description="Annotate Chinese text with derived historical pronunciations."
    )
    parser.add_argument(
        "--mode",
        choices=[mode.value for mode in ExportMode],
        default=ExportMode.ARTICLE.value,
        help="Export mode (default: article).",
    )
    parser.add_argument(
        "--dictionary",
        type=Path,
        default=_resolve_default_dictionary_path(),
        help="Path to dictionary TSV (headword, position, fanqie, gloss).",
    )
    parser.add_argument(
        "--variants",
        type=Path,
        default=Path("data") / "variants.tsv",
        help="Path to variant TSV.",
    )
    parser.add_argument(
        "--scheme",
        dest="schemes",
        action="append",
        type=Path,
        required=True,
        help="Derivation scheme script; repeat for several schemes.",
    )
    parser.add_argument(
        "--option",
        dest="options",
        action="append",
        type=parse_option,
        default=[],
        help="Scheme setting as [SCHEME:]NAME=VALUE; without SCHEME it applies to all schemes.",
    )
    article = parser.add_mutually_exclusive_group()
    article.add_argument("--article", default=None, help="Text to annotate in article mode.")
    article.add_argument(
        "--article-file", type=Path, default=None, help="File holding the text to annotate."
    )
    parser.add_argument(
        "--variant-policy",
        choices=[policy.value for policy in VariantPolicy],
        default=VariantPolicy.DISABLED.value,
        help="Variant handling in article mode (default: disabled).",
    )
    parser.add_argument(
        "--preset-source",
        default=DEFAULT_PRESET_SOURCE,
        help="URL or local path of the preset text.",
    )
    parser.add_argument("--output", type=Path, default=None, help="Output path (default: stdout).")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING).",
    )
    return parser


def _build_schemes(
    paths: Sequence[Path], options: Sequence[tuple[str | None, str, Any]]
) -> list[DerivationScheme]:
    schemes = []
    for index, path in enumerate(paths):
        settings = {
            name: value
            for scheme_id, name, value in options
            if scheme_id is None or scheme_id == path.stem
        }
        schemes.append(load_scheme(path, settings=settings, scheme_id=index))
    return schemes


def main(argv: Sequence[str] | None = None) -> int:
    """Run CLI workflow from arguments through output.

    Returns:
        Zero on success, one when the run fails with an engine error.
    """

    parser = build_arg_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.dictionary.exists():
        raise SystemExit(f"Dictionary not found: {args.dictionary}")
    for path in args.schemes:
        if not path.exists():
            raise SystemExit(f"Scheme not found: {path}")

    article = DEFAULT_ARTICLE
    if args.article is not None:
        article = args.article
    elif args.article_file is not None:
        article = args.article_file.read_text(encoding="utf-8")

    try:
        result = run_export(
            mode=ExportMode(args.mode),
            schemes=_build_schemes(args.schemes, args.options),
            store=PositionRepository(args.dictionary),
            variants=VariantRepository(args.variants),
            article=article,
            variant_policy=VariantPolicy(args.variant_policy),
            preset_fetcher=PresetTextFetcher(args.preset_source),
        )
    except AutoderiverError as err:
        print(format_error_chain(err), file=sys.stderr)
        return 1

    write_text(result.text, args.output)
    if args.output is not None:
        print(f"Wrote {args.mode} output to {args.output}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
