"""Command line interface for asset_uploader package."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from dataclasses import replace
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from rich.logging import RichHandler
from rich.table import Table

from .cli_progress import BatchUploadProgressDisplay, console, render_configuration_summary
from .models import MB, AssetDescriptor, UploadConfig, UploadItem, UploadStatus
from .orchestrator import UploadOrchestrator


API_URL_ENV = "ASSET_UPLOADER_API_URL"
LOG_LEVEL_ENV = "ASSET_UPLOADER_LOG_LEVEL"


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Configure logging.

    Default behavior is silent unless --debug or --log-level is provided.
    Returns a string describing effective mode.
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    logging.disable(logging.NOTSET)

    if silent or (not debug and not log_level):
        logging.disable(logging.CRITICAL)
        root_logger.setLevel(logging.CRITICAL + 1)
        return "silent"

    if debug:
        level = logging.DEBUG
    else:
        level = getattr(logging, log_level.upper(), logging.INFO)

    handler = RichHandler(
        rich_tracebacks=True,
        markup=True,
        show_time=False,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    return logging.getLevelName(level)


def _strip_optional_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        return value[1:-1]
    return value


def _load_env_file(path: Path, override: bool = False) -> None:
    if not path.exists():
        raise CLIError(f"env file not found: {path}")
    if not path.is_file():
        raise CLIError(f"env path is not a file: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CLIError(f"could not read env file {path}: {exc}") from exc

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].strip()
        if "=" not in line:
            continue

        key, value = line.split("=", 1)
        key = key.strip()
        if not key:
            continue

        value = _strip_optional_quotes(value.strip())
        if override or key not in os.environ:
            os.environ[key] = value


def _resolve_default_env_file() -> Optional[Path]:
    default_env = Path(".env")
    return default_env if default_env.exists() and default_env.is_file() else None


def _build_config(args: argparse.Namespace) -> UploadConfig:
    """Start from the chosen preset and apply flag overrides."""
    overrides: Dict[str, object] = {}
    if args.field:
        overrides["field_name"] = args.field
    if args.threshold is not None:
        if args.threshold <= 0:
            raise CLIError("--threshold must be positive")
        overrides["single_shot_threshold"] = int(args.threshold * MB)
    if args.chunk_size is not None:
        if args.chunk_size <= 0:
            raise CLIError("--chunk-size must be positive")
        overrides["chunk_size"] = int(args.chunk_size * MB)

    if args.video:
        config = UploadConfig.for_video(**overrides)
    elif args.image:
        config = UploadConfig.for_image(**overrides)
    else:
        config = UploadConfig(**overrides)

    endpoints = {
        "upload": args.endpoint,
        "chunk": args.chunk_endpoint,
        "delete": args.delete_endpoint,
        "by_url": args.url_endpoint,
        "session_status": args.status_endpoint,
    }
    endpoints = {key: value for key, value in endpoints.items() if value}
    if endpoints:
        config = replace(config, endpoints=replace(config.endpoints, **endpoints))
    return config


def _render_summary(uploaded: List[AssetDescriptor], failed: List[UploadItem]) -> None:
    table = Table(title="Upload summary", show_lines=False)
    table.add_column("Status", style="bold")
    table.add_column("File / URL")
    table.add_column("Detail", style="dim")

    for asset in uploaded:
        detail = " ".join(
            part for part in (
                f"{asset.width}x{asset.height}" if asset.width and asset.height else "",
                f"{asset.duration:.1f}s" if asset.duration else "",
            ) if part
        )
        table.add_row("[green]ok[/green]", asset.url, detail or "-")
    for item in failed:
        table.add_row("[red]failed[/red]", item.name, item.error or "-")

    console.print(table)


async def _run_upload(
    api_url: str,
    config: UploadConfig,
    files: Sequence[Path],
    urls: Sequence[str],
    deletes: Sequence[str],
    retries: int,
) -> int:
    exit_code = 0
    uploaded: List[AssetDescriptor] = []
    rejected = 0

    async with UploadOrchestrator(api_url, config) as orchestrator:
        BatchUploadProgressDisplay().attach(orchestrator)
        orchestrator.on_complete(lambda item, asset: uploaded.append(asset))

        for url in deletes:
            if await orchestrator.deletion_service.delete(url):
                console.print(f"[green]Deleted:[/green] {url}")
            else:
                console.print(f"[red]Delete failed:[/red] {url}")
                exit_code = 1

        batches = []
        if files:
            batches.append(await orchestrator.handle_upload(files))
        for url in urls:
            batches.append(await orchestrator.handle_url(url))
        rejected = sum(len(batch.rejected) for batch in batches if batch is not None)

        attempt = 0
        while attempt < retries and any(item.status is UploadStatus.ERROR for item in orchestrator.queue):
            attempt += 1
            console.print(f"[yellow]Retrying failed uploads ({attempt}/{retries})[/yellow]")
            await orchestrator.retry_failed()

        failed = [item for item in orchestrator.queue if item.status is UploadStatus.ERROR]

    if files or urls:
        _render_summary(uploaded, failed)
    if failed or rejected:
        exit_code = 1
    return exit_code


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="asset-up",
        description="Upload files to an asset endpoint, chunking large ones.",
    )
    parser.add_argument("files", nargs="*", type=Path, help="Files to upload")
    parser.add_argument(
        "-u",
        "--api-url",
        default=None,
        help=f"Base URL of the upload API (default from {API_URL_ENV})",
    )
    preset = parser.add_mutually_exclusive_group()
    preset.add_argument("--video", action="store_true", help="Use the video endpoints and limits")
    preset.add_argument("--image", action="store_true", help="Use the image endpoints and limits")
    parser.add_argument("--endpoint", default=None, help="Single-shot upload endpoint path")
    parser.add_argument("--chunk-endpoint", default=None, help="Chunk upload endpoint path")
    parser.add_argument("--delete-endpoint", default=None, help="Delete endpoint path")
    parser.add_argument("--url-endpoint", default=None, help="Remote URL import endpoint path")
    parser.add_argument("--status-endpoint", default=None, help="Processing status endpoint path")
    parser.add_argument("--field", default=None, help="Multipart field name for the file")
    parser.add_argument(
        "--threshold",
        type=float,
        default=None,
        help="Size in MB at or above which files are chunked",
    )
    parser.add_argument("--chunk-size", type=float, default=None, help="Chunk size in MB")
    parser.add_argument(
        "--url",
        action="append",
        default=[],
        help="Have the server import a remote file (repeatable)",
    )
    parser.add_argument(
        "--retries",
        type=int,
        default=0,
        help="Retry failed uploads up to N more times",
    )
    parser.add_argument(
        "--delete",
        action="append",
        default=[],
        metavar="URL",
        help="Delete a previously uploaded asset (repeatable)",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load environment variables from this .env file",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    parser.add_argument("--silent", action="store_true", help="Only print errors")
    parser.add_argument(
        "--log-level",
        default=None,
        help=f"Explicit log level (DEBUG/INFO/WARNING/ERROR, default from {LOG_LEVEL_ENV})",
    )
    parser.add_argument(
        "--version",
        action="version",
        version="asset-up (from asset_uploader)",
    )
    return parser


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    used_env_file = args.env_file or _resolve_default_env_file()
    if used_env_file is not None:
        try:
            _load_env_file(Path(used_env_file))
        except CLIError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1

    effective_log_mode = _setup_logging(
        debug=args.debug,
        silent=args.silent,
        log_level=args.log_level or os.getenv(LOG_LEVEL_ENV),
    )

    if not args.files and not args.url and not args.delete:
        parser.print_help()
        return 0

    files = [Path(f).expanduser() for f in args.files]
    for path in files:
        if not path.is_file():
            print(f"ERROR: file does not exist: {path}", file=sys.stderr)
            return 1

    if args.retries < 0:
        print("ERROR: --retries must not be negative", file=sys.stderr)
        return 1

    api_url = args.api_url or os.getenv(API_URL_ENV)
    if not api_url:
        print(f"ERROR: --api-url or {API_URL_ENV} is required", file=sys.stderr)
        return 1

    try:
        config = _build_config(args)
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    render_configuration_summary(
        {
            "API": api_url,
            "Files": len(files),
            "Remote URLs": len(args.url),
            "Deletes": len(args.delete),
            "Upload Endpoint": config.endpoints.upload,
            "Chunk Endpoint": config.endpoints.chunk_endpoint,
            "Chunked From": f"{config.single_shot_threshold / MB:g} MB",
            "Chunk Size": f"{config.chunk_size / MB:g} MB",
            "Retries": args.retries,
            "Env File": str(used_env_file) if used_env_file else "-",
            "Logging": effective_log_mode,
        }
    )

    try:
        return asyncio.run(
            _run_upload(
                api_url=api_url,
                config=config,
                files=files,
                urls=args.url,
                deletes=args.delete,
                retries=args.retries,
            )
        )
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
