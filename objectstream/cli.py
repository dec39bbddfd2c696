"""CLI entrypoint streaming the content of a list of objects to a file or stdout."""

from __future__ import annotations

import argparse
import json
import logging
import os
import re
import sys
from pathlib import Path
from typing import Any, Iterable, Iterator, List, Optional, TextIO

from .config import DEFAULT_CHUNK_SIZE, AppConfig, TransformConfig
from .errors import ContentStreamError
from .pipeline import StreamPipeline
from .transforms import build_default_registry, produces_records

logger = logging.getLogger(__name__)


def load_env_file(env_path: str = ".env") -> None:
    """Load environment variables from .env file."""
    env_file = Path(env_path)
    if not env_file.exists():
        logging.debug("Environment file not found: %s", env_path)
        return

    logging.info("Loading environment from: %s", env_path)
    with open(env_file) as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#") and "=" in line:
                key, value = line.split("=", 1)
                # Only set if not already in environment
                if key.strip() not in os.environ:
                    os.environ[key.strip()] = value.strip()


def expand_env_vars(data: dict | list | str) -> dict | list | str:
    """Recursively expand ${VAR} and $VAR references in config."""
    if isinstance(data, dict):
        return {key: expand_env_vars(value) for key, value in data.items()}
    elif isinstance(data, list):
        return [expand_env_vars(item) for item in data]
    elif isinstance(data, str):
        def replacer(match):
            var_name = match.group(1) or match.group(2)
            return os.environ.get(var_name, match.group(0))

        return re.sub(r'\$\{(\w+)\}|\$(\w+)', replacer, data)
    else:
        return data


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Stream the content of object-store objects, one after another",
        epilog="Example: objectstream --bucket logs a.log.gz b.log.gz --transform gunzip | grep ERROR",
    )
    parser.add_argument("keys", nargs="*", help="Object keys; read from --input when omitted")
    parser.add_argument(
        "--config",
        type=Path,
        help="Optional path to a JSON config file; command-line flags override it",
    )
    parser.add_argument("--bucket", help="Bucket holding the objects")
    parser.add_argument("--store", choices=["s3", "local_fs"], help="Store client type (default: s3)")
    parser.add_argument("--base-path", help="Root directory for the local_fs store")
    parser.add_argument("--endpoint-url", help="Custom S3 endpoint (LocalStack, MinIO)")
    parser.add_argument("--region", help="AWS region")
    parser.add_argument(
        "--transform",
        choices=sorted(build_default_registry().registry),
        help="Per-object transform applied to each object's content",
    )
    parser.add_argument(
        "--full-metadata",
        action="store_true",
        help="Treat each input line as a JSON record carrying a 'Key' field",
    )
    parser.add_argument(
        "--object-mode",
        action="store_true",
        help="Forward records unchanged and write them as JSON lines (implied by --transform jsonl)",
    )
    parser.add_argument(
        "--chunk-size",
        type=int,
        help=f"Read size in bytes (default: {DEFAULT_CHUNK_SIZE})",
    )
    parser.add_argument(
        "--input",
        type=Path,
        help="File listing one identifier per line (default: stdin)",
    )
    parser.add_argument(
        "--output",
        type=Path,
        help="Destination file (default: stdout)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Verbosity for logging output",
    )
    parser.add_argument(
        "--env-file",
        default=".env",
        help="Path to .env file (default: .env)",
    )
    return parser.parse_args(argv)


def load_config(args: argparse.Namespace) -> AppConfig:
    data: dict = {}
    if args.config:
        if not args.config.exists():
            raise FileNotFoundError(f"Config file not found: {args.config}")
        with open(args.config) as f:
            data = expand_env_vars(json.load(f))

    if args.bucket:
        data["bucket"] = args.bucket

    store = dict(data.get("store", {"type": "s3"}))
    params = dict(store.get("params", {}))
    if args.store:
        store["type"] = args.store
    for name in ("base_path", "endpoint_url", "region"):
        value = getattr(args, name)
        if value:
            params[name] = value
    store["params"] = params
    data["store"] = store

    options = dict(data.get("options", {}))
    if args.full_metadata:
        options["full_metadata"] = True
    if args.chunk_size:
        options["chunk_size"] = args.chunk_size

    if args.transform:
        data["transform"] = {"type": args.transform}

    transform_data = data.get("transform")
    if args.object_mode or (transform_data and produces_records(TransformConfig(**transform_data))):
        options["object_mode"] = True
    data["options"] = options

    config = AppConfig.from_dict(data)
    logger.debug(
        "Resolved config: bucket=%s store=%s transform=%s",
        config.bucket,
        config.store.type,
        config.transform.type if config.transform else None,
    )
    return config


def read_identifiers(lines: Iterable[str], full_metadata: bool) -> Iterator[Any]:
    """Yield identifiers lazily from text lines, skipping blank ones."""
    for line in lines:
        line = line.strip()
        if not line:
            continue
        yield json.loads(line) if full_metadata else line


def _identifier_lines(args: argparse.Namespace, stdin: TextIO) -> Iterator[str]:
    if args.keys:
        yield from args.keys
    elif args.input:
        with open(args.input, encoding="utf-8") as f:
            yield from f
    else:
        yield from stdin


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    # Load environment variables from .env file
    load_env_file(args.env_file)

    try:
        config = load_config(args)
        pipeline = StreamPipeline(config)
    except (ValueError, TypeError, FileNotFoundError) as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2

    identifiers = read_identifiers(
        _identifier_lines(args, sys.stdin), config.options.full_metadata
    )
    try:
        if args.output:
            with open(args.output, "wb") as sink:
                result = pipeline.run(identifiers, sink)
        else:
            result = pipeline.run(identifiers, sys.stdout.buffer)
    except ContentStreamError as exc:
        logger.error("Streaming failed: %s", exc)
        return 1
    except json.JSONDecodeError as exc:
        logger.error("Invalid identifier record: %s", exc)
        return 1

    logging.info(
        "Streamed %d objects from %s (%d bytes)",
        result.objects_processed,
        result.bucket,
        result.bytes_written,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
