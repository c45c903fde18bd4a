"""Tests for asset_uploader CLI helpers."""
import logging
import os
from unittest.mock import AsyncMock, patch

import pytest

from asset_uploader.cli import (
    CLIError,
    _build_config,
    _build_parser,
    _load_env_file,
    _setup_logging,
    run_cli,
)
from asset_uploader.models import MB


def test_load_env_file(tmp_path, monkeypatch):
    env_path = tmp_path / ".env"
    env_path.write_text(
        "\n".join(
            [
                "# comment",
                "ASSET_UPLOADER_API_URL=http://localhost:3312",
                "ASSET_UPLOADER_LOG_LEVEL='debug'",
                "export ASSET_UPLOADER_TOKEN=abc",
            ]
        ),
        encoding="utf-8",
    )

    for key in ("ASSET_UPLOADER_API_URL", "ASSET_UPLOADER_LOG_LEVEL", "ASSET_UPLOADER_TOKEN"):
        monkeypatch.setenv(key, "placeholder")

    _load_env_file(env_path, override=True)

    assert os.environ["ASSET_UPLOADER_API_URL"] == "http://localhost:3312"
    assert os.environ["ASSET_UPLOADER_LOG_LEVEL"] == "debug"
    assert os.environ["ASSET_UPLOADER_TOKEN"] == "abc"


def test_load_env_file_missing(tmp_path):
    with pytest.raises(CLIError):
        _load_env_file(tmp_path / "nope.env")


def test_build_config_video_preset_with_overrides():
    args = _build_parser().parse_args([
        "--video",
        "--threshold", "2",
        "--chunk-size", "0.5",
        "--chunk-endpoint", "/v2/chunk",
        "clip.mp4",
    ])
    config = _build_config(args)

    assert config.field_name == "video"
    assert config.single_shot_threshold == 2 * MB
    assert config.chunk_size == MB // 2
    assert config.endpoints.chunk == "/v2/chunk"
    assert config.endpoints.upload == "/video-upload"


def test_build_config_rejects_bad_sizes():
    args = _build_parser().parse_args(["--threshold", "0", "a.png"])
    with pytest.raises(CLIError):
        _build_config(args)


def test_setup_logging_defaults_to_silent():
    mode = _setup_logging(debug=False, silent=False, log_level=None)
    assert mode == "silent"
    assert logging.getLogger().isEnabledFor(logging.ERROR) is False
    logging.disable(logging.NOTSET)


def test_setup_logging_debug_mode():
    mode = _setup_logging(debug=True, silent=False, log_level=None)
    assert mode == "DEBUG"
    assert logging.getLogger().isEnabledFor(logging.DEBUG) is True
    logging.disable(logging.NOTSET)


def test_run_cli_requires_api_url(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("ASSET_UPLOADER_API_URL", raising=False)
    path = tmp_path / "a.png"
    path.write_bytes(b"png")

    assert run_cli([str(path), "--silent"]) == 1


def test_run_cli_missing_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert run_cli([str(tmp_path / "missing.png"), "--api-url", "http://x", "--silent"]) == 1


def test_run_cli_passes_options(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    path = tmp_path / "a.png"
    path.write_bytes(b"png")

    with patch("asset_uploader.cli._run_upload", new=AsyncMock(return_value=0)) as run_upload:
        code = run_cli([str(path), "--api-url", "http://x", "--retries", "2", "--silent"])

    assert code == 0
    kwargs = run_upload.await_args.kwargs
    assert kwargs["api_url"] == "http://x"
    assert kwargs["files"] == [path]
    assert kwargs["retries"] == 2


def test_run_cli_without_work_prints_help(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    assert run_cli(["--silent"]) == 0
    assert "asset-up" in capsys.readouterr().out


def test_progress_display_renders_batch_events():
    from asset_uploader.cli_progress import BatchUploadProgressDisplay
    from asset_uploader.models import AssetDescriptor, UploadFile, UploadItem
    from asset_uploader.orchestrator import BatchResult
    from asset_uploader.progress import ProgressBridge

    display = BatchUploadProgressDisplay()
    done = UploadItem(UploadFile.from_bytes("a.png", b"abc"))
    broken = UploadItem(UploadFile.from_bytes("b.png", b"abc"))

    display.on_queue([done, broken])
    done.start()
    bridge = ProgressBridge(3)
    display.on_metrics(done, bridge.on_progress(50))
    asset = AssetDescriptor(url="https://cdn.test/a.png")
    done.succeed(asset)
    display.on_complete(done, asset)
    broken.start()
    broken.fail("Internal error")
    display.on_error(broken, "Internal error")
    display.on_error(None, "File is empty.")
    display.on_finish(BatchResult(succeeded=[done], failed=[broken]))

    assert display._tasks == {}
    assert display._live is None
