"""Command line entry point: ``python -m shotgen BATCH_JSON``.

Reads a batch submission (``{"segments": [...], "options": {...}}`` or a bare
list of segments), runs it and prints the results as JSON.

Exit codes: 0 when every segment succeeded, 1 when any segment failed,
2 when the batch was rejected or no backend is configured.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from shotgen.agents.base import ConfigurationError, InvalidBatchError
from shotgen.orchestrator.pipeline import GenerationOrchestrator, OrchestratorConfig
from shotgen.schemas.segment import BackendKind, GenerationMode


EXIT_OK = 0
EXIT_PARTIAL_FAILURE = 1
EXIT_REJECTED = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shotgen",
        description="Generate shot lists for a batch of video segments"
    )
    parser.add_argument("batch_json", type=Path, help="Batch submission JSON file")
    parser.add_argument(
        "--mode",
        choices=[mode.value for mode in GenerationMode],
        help="Prompt template to use"
    )
    parser.add_argument("--concurrency", type=int, help="Maximum backend calls in flight")
    parser.add_argument(
        "--max-retries",
        type=int,
        help="Total attempts allowed per segment"
    )
    parser.add_argument(
        "--retry-parse-errors",
        action="store_true",
        help="Also retry attempts whose output could not be parsed"
    )
    parser.add_argument(
        "--backend",
        choices=[kind.value for kind in BackendKind],
        help="Override the configured backend"
    )
    parser.add_argument(
        "--log-dir",
        help="Directory where generation.log is written"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser


def load_batch(path: Path) -> Dict[str, Any]:
    """Read a batch file; a top-level list is taken as the segment list."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    if isinstance(data, list):
        return {"segments": data, "options": {}}
    if isinstance(data, dict):
        options = data.get("options")
        if options is None:
            options = {}
        if not isinstance(options, dict):
            raise InvalidBatchError(
                "Batch options must be an object",
                {"path": str(path), "options_type": type(options).__name__}
            )
        return {"segments": data.get("segments"), "options": dict(options)}

    raise InvalidBatchError(
        "Batch file must contain an object or a list",
        {"path": str(path), "json_type": type(data).__name__}
    )


def apply_overrides(options: Dict[str, Any], args: argparse.Namespace) -> Dict[str, Any]:
    """Command line flags take precedence over options from the file."""
    overrides = {
        "mode": args.mode,
        "concurrency": args.concurrency,
        "maxRetries": args.max_retries,
        "backend": args.backend,
    }
    for key, value in overrides.items():
        if value is not None:
            options.pop(_snake(key), None)
            options[key] = value
    if args.retry_parse_errors:
        options.pop("retry_parse_errors", None)
        options["retryParseErrors"] = True
    return options


def _snake(name: str) -> str:
    return "".join(f"_{c.lower()}" if c.isupper() else c for c in name)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr
    )

    orchestrator = GenerationOrchestrator(config=OrchestratorConfig(log_directory=args.log_dir))

    try:
        batch = load_batch(args.batch_json)
        options = apply_overrides(batch["options"], args)
        results = orchestrator.generate_batch(batch["segments"], options)
    except (InvalidBatchError, ConfigurationError) as e:
        print(json.dumps({
            "error": {"kind": e.kind, "code": e.error_code, "message": e.message,
                      "context": e.context}
        }, indent=2, default=str))
        return EXIT_REJECTED
    except (OSError, json.JSONDecodeError) as e:
        print(f"Could not read batch file {args.batch_json}: {e}", file=sys.stderr)
        return EXIT_REJECTED

    print(json.dumps(
        [result.model_dump(by_alias=True, mode="json", exclude_none=True) for result in results],
        indent=2,
        ensure_ascii=False
    ))
    return EXIT_OK if all(result.success for result in results) else EXIT_PARTIAL_FAILURE


if __name__ == "__main__":
    sys.exit(main())
