"""Tests for transfer strategies against a fake upload server."""
import asyncio

import httpx
import pytest

from asset_uploader.errors import ProtocolError, TransportError
from asset_uploader.models import UploadConfig, UploadEndpoints, UploadFile
from asset_uploader.strategies import ChunkedStrategy, RemoteUrlStrategy, SingleShotStrategy

from conftest import Recorder, form_fields, make_client


def _is_monotonic(values):
    return all(a <= b for a, b in zip(values, values[1:]))


class TestSingleShotStrategy:
    @pytest.mark.asyncio
    async def test_small_file_uploads_in_one_request(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={
                "success": 1,
                "url": "https://cdn.test/storage/photo.png",
                "width": "800",
                "height": 600,
            })

        file = UploadFile.from_bytes("photo.png", b"p" * (256 * 1024))
        progress, status = Recorder(), Recorder()

        async with make_client(handler) as client:
            strategy = SingleShotStrategy(client, UploadConfig())
            strategy.set_progress_callback(progress).set_status_callback(status)
            asset = await strategy.execute(file)

        assert len(requests) == 1
        assert requests[0].url.path == "/upload"
        assert b'name="file"; filename="photo.png"' in requests[0].content
        assert asset.url == "https://cdn.test/storage/photo.png"
        assert asset.width == 800
        assert asset.duration is None
        assert progress.values[0] == 0
        assert progress.values[-1] == 100
        assert _is_monotonic(progress.values)
        assert status.calls[0][1] == "single_upload"
        assert status.calls[-1][1] == "complete"

    @pytest.mark.asyncio
    async def test_nested_file_url(self):
        def handler(request):
            return httpx.Response(200, json={"success": True, "file": {"url": "https://cdn.test/a.png"}})

        async with make_client(handler) as client:
            asset = await SingleShotStrategy(client).execute(UploadFile.from_bytes("a.png", b"abc"))
        assert asset.url == "https://cdn.test/a.png"

    @pytest.mark.asyncio
    async def test_missing_url_is_protocol_error(self):
        progress = Recorder()

        def handler(request):
            return httpx.Response(200, json={"success": True})

        async with make_client(handler) as client:
            strategy = SingleShotStrategy(client).set_progress_callback(progress)
            with pytest.raises(ProtocolError, match="No URL"):
                await strategy.execute(UploadFile.from_bytes("a.png", b"abc"))
        assert 100 not in progress.values

    @pytest.mark.asyncio
    async def test_success_zero_is_protocol_error(self):
        def handler(request):
            return httpx.Response(200, json={"success": 0, "message": "Disk full"})

        async with make_client(handler) as client:
            with pytest.raises(ProtocolError, match="Disk full"):
                await SingleShotStrategy(client).execute(UploadFile.from_bytes("a.png", b"abc"))

    @pytest.mark.asyncio
    async def test_http_error_is_transport_error(self):
        def handler(request):
            return httpx.Response(413, json={"message": "Too large"})

        async with make_client(handler) as client:
            with pytest.raises(TransportError) as exc_info:
                await SingleShotStrategy(client).execute(UploadFile.from_bytes("a.png", b"abc"))
        assert exc_info.value.status_code == 413
        assert "Too large" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_network_failure_is_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with make_client(handler) as client:
            with pytest.raises(TransportError):
                await SingleShotStrategy(client).execute(UploadFile.from_bytes("a.png", b"abc"))

    @pytest.mark.asyncio
    async def test_buffer_released_after_execute(self):
        def handler(request):
            return httpx.Response(200, json={"url": "u"})

        async with make_client(handler) as client:
            strategy = SingleShotStrategy(client)
            await strategy.execute(UploadFile.from_bytes("a.png", b"abc"))
        assert strategy._buffer is None


class TestChunkedStrategy:
    def _config(self, **kwargs):
        return UploadConfig(single_shot_threshold=10, chunk_size=10, **kwargs)

    @pytest.mark.asyncio
    async def test_chunks_sent_in_order(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            fields = form_fields(request)
            seen.append(fields)
            if int(fields["chunk"]) == int(fields["chunks"]) - 1:
                return httpx.Response(200, json={
                    "success": True,
                    "completed": True,
                    "url": "https://cdn.test/storage/big.mp4",
                })
            return httpx.Response(200, json={"success": True, "completed": False})

        file = UploadFile.from_bytes("big.mp4", b"v" * 25)
        progress = Recorder()

        async with make_client(handler) as client:
            strategy = ChunkedStrategy(client, self._config())
            strategy.set_progress_callback(progress)
            asset = await strategy.execute(file)

        assert [f["chunk"] for f in seen] == ["0", "1", "2"]
        assert all(f["chunks"] == "3" for f in seen)
        assert len({f["fileKey"] for f in seen}) == 1
        assert seen[0]["fileKey"] == seen[0]["session_id"]
        assert seen[0]["fileName"] == "big.mp4"
        assert progress.values == [0, 33, 67, 99, 100]
        assert asset.url == "https://cdn.test/storage/big.mp4"
        assert strategy.session is None

    @pytest.mark.asyncio
    async def test_chunk_failure_fails_transfer(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 2:
                return httpx.Response(500, json={"message": "Chunk write failed"})
            return httpx.Response(200, json={"success": True})

        async with make_client(handler) as client:
            with pytest.raises(TransportError, match="Chunk write failed"):
                await ChunkedStrategy(client, self._config()).execute(UploadFile.from_bytes("big.mp4", b"v" * 25))
        # Uploads are never auto-retried and nothing follows the failed chunk.
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_final_ack_must_be_completed(self):
        def handler(request):
            return httpx.Response(200, json={"success": True})

        async with make_client(handler) as client:
            with pytest.raises(ProtocolError, match="no final response"):
                await ChunkedStrategy(client, self._config()).execute(UploadFile.from_bytes("big.mp4", b"v" * 25))

    @pytest.mark.asyncio
    async def test_server_created_session(self):
        seen = []

        def handler(request):
            if request.url.path == "/sessions":
                return httpx.Response(200, json={"success": True, "data": {"session_id": "srv-42"}})
            seen.append(form_fields(request))
            return httpx.Response(200, json={"success": True, "completed": True, "url": "u"})

        config = self._config(endpoints=UploadEndpoints(create_session="/sessions"))
        async with make_client(handler) as client:
            await ChunkedStrategy(client, config).execute(UploadFile.from_bytes("big.mp4", b"v" * 5))

        assert seen[0]["session_id"] == "srv-42"

    @pytest.mark.asyncio
    async def test_processing_is_polled_until_complete(self):
        polls = []

        def handler(request):
            if request.method == "GET":
                polls.append(request.url.path)
                if len(polls) == 1:
                    return httpx.Response(200, json={"status": "processing", "phase": "conversion"})
                return httpx.Response(200, json={
                    "status": "completed",
                    "phase": "complete",
                    "data": {
                        "url": "https://cdn.test/storage/documents/videos/final.mp4",
                        "final_filename": "final.mp4",
                        "thumbnail_filename": "final.jpg",
                        "file_size": 25,
                        "video_metadata": {"width": 1920, "height": 1080, "duration": 12.5, "format": "mp4"},
                    },
                })
            return httpx.Response(200, json={
                "success": True,
                "completed": True,
                "processing": True,
                "session_id": "proc-1",
            })

        config = self._config(
            endpoints=UploadEndpoints(session_status="/upload-sessions"),
            poll_interval=0,
        )
        status = Recorder()
        async with make_client(handler) as client:
            strategy = ChunkedStrategy(client, config).set_status_callback(status)
            asset = await strategy.execute(UploadFile.from_bytes("big.mp4", b"v" * 25))

        assert polls == ["/upload-sessions/proc-1/status"] * 2
        assert asset.url.endswith("final.mp4")
        assert asset.width == 1920
        assert asset.duration == 12.5
        assert asset.thumbnail == "final.jpg"
        phases = [call[1] for call in status.calls]
        assert phases == ["chunk_upload", "video_processing", "video_processing", "complete"]
        assert status.calls[2][0] == "Converting video format..."

    @pytest.mark.asyncio
    async def test_status_phases_stay_in_fixed_set(self):
        server_phases = iter(["chunk_assembly", "conversion", "metadata_extraction", "thumbnail_generation"])

        def handler(request):
            if request.method == "GET":
                phase = next(server_phases, None)
                if phase is None:
                    return httpx.Response(200, json={
                        "status": "completed",
                        "phase": "complete",
                        "data": {"url": "https://cdn.test/final.mp4"},
                    })
                return httpx.Response(200, json={"status": "processing", "phase": phase})
            return httpx.Response(200, json={
                "success": True,
                "completed": True,
                "processing": True,
                "session_id": "proc-2",
            })

        config = self._config(endpoints=UploadEndpoints(session_status="/upload-sessions"), poll_interval=0)
        status = Recorder()
        async with make_client(handler) as client:
            strategy = ChunkedStrategy(client, config).set_status_callback(status)
            await strategy.execute(UploadFile.from_bytes("big.mp4", b"v" * 25))

        allowed = {"single_upload", "chunk_upload", "video_processing", "complete", "error"}
        assert {call[1] for call in status.calls} <= allowed
        assert [call[0] for call in status.calls[2:6]] == [
            "Assembling video chunks...",
            "Converting video format...",
            "Extracting metadata...",
            "Generating thumbnails...",
        ]

    @pytest.mark.asyncio
    async def test_processing_failure(self):
        def handler(request):
            if request.method == "GET":
                return httpx.Response(200, json={"status": "failed", "data": {"error_message": "Unsupported codec"}})
            return httpx.Response(200, json={"success": True, "completed": True, "processing": True})

        config = self._config(endpoints=UploadEndpoints(session_status="/upload-sessions"), poll_interval=0)
        async with make_client(handler) as client:
            with pytest.raises(ProtocolError, match="Unsupported codec"):
                await ChunkedStrategy(client, config).execute(UploadFile.from_bytes("big.mp4", b"v" * 5))

    @pytest.mark.asyncio
    async def test_processing_timeout(self):
        def handler(request):
            if request.method == "GET":
                return httpx.Response(200, json={"status": "processing", "phase": "conversion"})
            return httpx.Response(200, json={"success": True, "completed": True, "processing": True})

        config = self._config(
            endpoints=UploadEndpoints(session_status="/upload-sessions"),
            poll_interval=0,
            processing_timeout=0,
        )
        async with make_client(handler) as client:
            with pytest.raises(TransportError, match="Timed out"):
                await ChunkedStrategy(client, config).execute(UploadFile.from_bytes("big.mp4", b"v" * 5))

    @pytest.mark.asyncio
    async def test_cancel_mid_transfer_tears_down_session(self):
        deletes = []
        second_chunk = asyncio.Event()

        async def handler(request):
            if request.method == "DELETE":
                deletes.append(request.url.path)
                return httpx.Response(200, json={"success": True})
            if form_fields(request)["chunk"] == "1":
                second_chunk.set()
                await asyncio.Event().wait()
            return httpx.Response(200, json={"success": True})

        config = self._config(endpoints=UploadEndpoints(cancel_session="/upload-sessions/{session_id}"))
        async with make_client(handler) as client:
            strategy = ChunkedStrategy(client, config)
            task = asyncio.create_task(strategy.execute(UploadFile.from_bytes("big.mp4", b"v" * 25)))
            await second_chunk.wait()
            session_id = strategy.session.session_id
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        assert deletes == [f"/upload-sessions/{session_id}"]
        assert strategy.session is None


class TestRemoteUrlStrategy:
    @pytest.mark.asyncio
    async def test_posts_url_to_import_endpoint(self):
        seen = []

        def handler(request):
            seen.append((request.url.path, request.content))
            return httpx.Response(200, json={"success": 1, "url": "https://cdn.test/storage/imported.png"})

        config = UploadConfig(endpoints=UploadEndpoints(by_url="/upload-by-url"))
        async with make_client(handler) as client:
            asset = await RemoteUrlStrategy(client, config).execute(
                UploadFile.from_url("https://example.com/pic.png")
            )

        assert seen[0][0] == "/upload-by-url"
        assert b"url=https%3A%2F%2Fexample.com%2Fpic.png" in seen[0][1]
        assert asset.url == "https://cdn.test/storage/imported.png"

    @pytest.mark.asyncio
    async def test_requires_source_url(self):
        async with make_client(lambda request: httpx.Response(200, json={})) as client:
            with pytest.raises(ProtocolError):
                await RemoteUrlStrategy(client).execute(UploadFile.from_bytes("a.png", b"abc"))
