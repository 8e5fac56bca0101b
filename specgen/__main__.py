"""Entry point: python -m specgen INPUT -o OUTPUT

Reads an API description (file or URL), generates a client into OUTPUT.
"""

from __future__ import annotations

import argparse
import logging
import sys

from .backend import available_backends, get_backend
from .errors import GeneratorError
from .loader import load_spec
from .options import GenerationOptions, parse_name_list
from .pipeline import generate

_SWITCH_ALL = "__all__"


def _properties(pairs: list[str]) -> dict[str, str]:
    properties = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep:
            raise argparse.ArgumentTypeError(f"expected key=value, got '{pair}'")
        properties[key.strip()] = value.strip()
    return properties


def _selection(value: str | None) -> tuple[bool | None, tuple[str, ...] | None]:
    """Map an optional-value switch to (enabled, allow-list)."""
    if value is None:
        return None, None
    if value == _SWITCH_ALL:
        return True, None
    if value.lower() == "false":
        return False, None
    return True, parse_name_list(value)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="specgen", description=__doc__.splitlines()[0])
    parser.add_argument("input", help="API description file or http(s) URL")
    parser.add_argument("-o", "--output", required=True, help="Output directory")
    parser.add_argument("-l", "--lang", default="python", help="Backend name (default: python)")
    parser.add_argument("--package-name", default="openapi_client", help="Generated package name")
    parser.add_argument("--model-package", help="Dotted package for model files (default: PACKAGE.models)")
    parser.add_argument("--api-package", help="Dotted package for api files (default: PACKAGE.api)")
    for name in ("models", "apis", "supporting-files"):
        parser.add_argument(
            f"--{name}",
            nargs="?",
            const=_SWITCH_ALL,
            metavar="NAMES",
            help=f"Generate {name.replace('-', ' ')} (optionally only the comma-separated NAMES)",
        )
    parser.add_argument("--no-model-tests", action="store_true")
    parser.add_argument("--no-model-docs", action="store_true")
    parser.add_argument("--no-api-tests", action="store_true")
    parser.add_argument("--no-api-docs", action="store_true")
    parser.add_argument("--no-metadata", action="store_true", help="Skip the ignore file and VERSION marker")
    parser.add_argument("--skip-overwrite", action="store_true", help="Never overwrite existing files")
    parser.add_argument("--ignore-file", help="Use this ignore rules file instead of OUTPUT/.specgen-ignore")
    parser.add_argument("--skip-alias-generation", action="store_true")
    parser.add_argument("--ignore-import-mapping", action="store_true")
    parser.add_argument("--namespaced-tags", action="store_true", help="Treat CamelCase tags up to a version number as packages")
    parser.add_argument("-D", dest="properties", action="append", default=[], metavar="KEY=VALUE",
                        help="Extra template property (repeatable)")
    parser.add_argument("-v", "--verbose", action="store_true")
    parser.add_argument("-q", "--quiet", action="store_true")
    return parser


def options_from_args(args: argparse.Namespace) -> GenerationOptions:
    generate_models, models = _selection(args.models)
    generate_apis, apis = _selection(args.apis)
    generate_supporting, supporting = _selection(args.supporting_files)
    return GenerationOptions(
        generate_models=generate_models,
        generate_apis=generate_apis,
        generate_supporting_files=generate_supporting,
        generate_model_tests=not args.no_model_tests,
        generate_model_docs=not args.no_model_docs,
        generate_api_tests=not args.no_api_tests,
        generate_api_docs=not args.no_api_docs,
        generate_metadata=not args.no_metadata,
        models=models,
        apis=apis,
        supporting_files=supporting,
        input_spec=args.input,
        properties=_properties(args.properties),
    )


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.WARNING if args.quiet else logging.INFO
    logging.basicConfig(level=level, format="[specgen] %(levelname)s %(message)s")

    if args.lang not in available_backends():
        parser.error(f"unknown --lang '{args.lang}' (available: {', '.join(available_backends())})")

    try:
        options = options_from_args(args)
        backend_kwargs = {
            "skip_overwrite": args.skip_overwrite,
            "ignore_file_override": args.ignore_file,
            "skip_alias_generation": args.skip_alias_generation,
            "ignore_import_mapping": args.ignore_import_mapping,
        }
        if args.model_package:
            backend_kwargs["model_package"] = args.model_package
        if args.api_package:
            backend_kwargs["api_package"] = args.api_package
        if args.lang == "python":
            backend_kwargs["package_name"] = args.package_name
            backend_kwargs["namespaced_tags"] = args.namespaced_tags
        backend = get_backend(args.lang, args.output, **backend_kwargs)
        spec = load_spec(args.input)
        files = generate(spec, backend, options)
    except (GeneratorError, argparse.ArgumentTypeError) as exc:
        print(f"[specgen] {exc}", file=sys.stderr)
        return 1

    if not args.quiet:
        print(f"Generated {len(files)} files in {args.output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
