"""Core orchestrator - owns the upload queue and drives one item at a time."""
import asyncio
import logging
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Set, Tuple, Union

import httpx

from ..errors import UploadError, ValidationError
from ..models import AssetDescriptor, UploadConfig, UploadFile, UploadItem, UploadStatus
from ..progress import ProgressBridge
from ..protocols import IAPIClient, IAssetHost
from ..registrar import ResultRegistrar
from ..services.api_client import HTTPAPIClient
from ..services.cleanup import DeletionService
from ..strategies.selector import StrategySelector
from ..utils.events import EditorSignals, EventEmitter
from ..validation import FileValidator
from .models import BatchResult

logger = logging.getLogger(__name__)

FileLike = Union[UploadFile, Path, str]


class UploadOrchestrator:
    """
    Upload queue for one content block.

    Items are uploaded strictly one after another. Each finished item is
    committed to the host block right away; failed items stay queued with
    their error until retried or discarded.

    Usage:
        async with UploadOrchestrator(api_url, UploadConfig.for_video(), host=block) as uploader:
            uploader.on_progress(lambda item, percent: print(item.name, percent))
            result = await uploader.handle_upload([Path("clip.mp4")])
            if result.failed:
                await uploader.retry_failed()

    Events:
        progress(item, percent), status(item, message, phase),
        metrics(item, snapshot), complete(item, asset), error(item, message),
        cancel(item), queue(items), change(), finish(result)

    error is also emitted with item=None for files rejected before queueing.
    """

    def __init__(
        self,
        api_url: str = "",
        config: Optional[UploadConfig] = None,
        host: Optional[IAssetHost] = None,
        signals: Optional[EditorSignals] = None,
        client: Optional[IAPIClient] = None,
        validator: Optional[FileValidator] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            api_url: Base URL the configured endpoints are relative to
            config: Upload configuration (endpoints, limits, timeouts)
            host: Content block that receives committed assets
            signals: Busy/free channel shared with autosave logic
            client: Pre-built API client; when omitted one is opened in __aenter__
            validator: Client-side file checks
            transport: httpx transport for the owned client (tests, proxies)
        """
        self._api_url = api_url
        self._config = config or UploadConfig()
        self._host = host
        self._signals = signals or EditorSignals()
        self._validator = validator or FileValidator(self._config)
        self._transport = transport
        self._registrar = ResultRegistrar(self._config)
        self._events = EventEmitter()

        # Services (initialized in __aenter__ unless a client was injected)
        self._api_client: Optional[HTTPAPIClient] = None
        self._selector: Optional[StrategySelector] = None
        self._deleter: Optional[DeletionService] = None
        if client is not None:
            self._build_services(client)

        self._queue: List[UploadItem] = []
        self._uploading = False
        self._batch: Optional[BatchResult] = None
        self._active_item: Optional[UploadItem] = None
        self._active_task: Optional[asyncio.Task] = None
        self._cancel_requested: Set[str] = set()

    def _build_services(self, client: IAPIClient) -> None:
        self._selector = StrategySelector(client, self._config, self._registrar)
        self._deleter = DeletionService(client, self._config, self._signals)

    async def __aenter__(self):
        if self._selector is None:
            self._api_client = HTTPAPIClient(
                self._api_url,
                timeout=self._config.request_timeout,
                headers=self._config.headers,
                transport=self._transport,
            )
            await self._api_client.__aenter__()
            self._build_services(self._api_client)
        return self

    async def __aexit__(self, *args):
        if self._api_client:
            await self._api_client.__aexit__(*args)
            self._api_client = None
            self._selector = None
            self._deleter = None

    # Event subscription

    def on_progress(self, callback: Callable):
        self._events.on("progress", callback)

    def on_status(self, callback: Callable):
        self._events.on("status", callback)

    def on_metrics(self, callback: Callable):
        self._events.on("metrics", callback)

    def on_complete(self, callback: Callable):
        self._events.on("complete", callback)

    def on_error(self, callback: Callable):
        self._events.on("error", callback)

    def on_cancel(self, callback: Callable):
        self._events.on("cancel", callback)

    def on_queue(self, callback: Callable):
        self._events.on("queue", callback)

    def on_change(self, callback: Callable):
        self._events.on("change", callback)

    def on_finish(self, callback: Callable):
        self._events.on("finish", callback)

    # State

    @property
    def queue(self) -> List[UploadItem]:
        return list(self._queue)

    @property
    def is_uploading(self) -> bool:
        return self._uploading

    @property
    def signals(self) -> EditorSignals:
        return self._signals

    @property
    def deletion_service(self) -> DeletionService:
        assert self._deleter is not None, "UploadOrchestrator used outside 'async with'"
        return self._deleter

    def get_item(self, item_id: str) -> Optional[UploadItem]:
        for item in self._queue:
            if item.id == item_id:
                return item
        return None

    # Operations

    async def handle_upload(self, files: Iterable[FileLike]) -> Optional[BatchResult]:
        """
        Validate, enqueue and upload a batch of files.

        Returns None without doing anything when a batch is already running.
        """
        if self._uploading:
            logger.warning("Upload already in progress, ignoring new batch")
            return None
        self._uploading = True
        try:
            uploads, rejected = self._open_files(files)
            accepted, invalid = self._validator.partition(uploads)
            rejected.extend(invalid)
            for error in rejected:
                await self._events.emit("error", None, str(error))

            items = [UploadItem(file) for file in accepted]
            if not items:
                result = BatchResult(rejected=rejected)
                await self._events.emit("finish", result)
                return result

            self._queue.extend(items)
            await self._events.emit("queue", self.queue)
            logger.info(f"Uploading {len(items)} file(s)")
            return await self._run_batch(items, rejected)
        finally:
            self._uploading = False

    async def handle_url(self, url: str) -> Optional[BatchResult]:
        """Have the server import a remote file, tracked as a one-item batch."""
        return await self.handle_upload([UploadFile.from_url(url)])

    async def retry_upload(self, item_id: str) -> Optional[BatchResult]:
        """Re-run one failed item with a fresh strategy."""
        if self._uploading:
            logger.warning("Upload already in progress, ignoring retry")
            return None
        item = self.get_item(item_id)
        if item is None:
            logger.warning(f"No queued item {item_id} to retry")
            return None
        if item.status is not UploadStatus.ERROR:
            logger.warning(f"Item {item.name} is {item.status.value}, only failed items can be retried")
            return None
        self._uploading = True
        try:
            item.reset_for_retry()
            logger.info(f"Retrying {item.name} (attempt {item.retry_count + 1})")
            await self._events.emit("queue", self.queue)
            return await self._run_batch([item])
        finally:
            self._uploading = False

    async def retry_failed(self) -> Optional[BatchResult]:
        """Re-run every item currently in error."""
        if self._uploading:
            logger.warning("Upload already in progress, ignoring retry")
            return None
        failed = [item for item in self._queue if item.status is UploadStatus.ERROR]
        if not failed:
            return BatchResult()
        self._uploading = True
        try:
            for item in failed:
                item.reset_for_retry()
            logger.info(f"Retrying {len(failed)} failed file(s)")
            await self._events.emit("queue", self.queue)
            return await self._run_batch(failed)
        finally:
            self._uploading = False

    async def cancel(self, item_id: str) -> bool:
        """
        Cancel a pending or active item.

        The active transfer is cancelled and torn down; the item leaves the
        queue without entering error. Returns False if nothing was cancelled.
        """
        item = self.get_item(item_id)
        if item is None:
            return False

        if item is self._active_item and self._active_task is not None and not self._active_task.done():
            logger.info(f"Cancelling active upload {item.name}")
            self._cancel_requested.add(item.id)
            self._active_task.cancel()
            return True

        if item.status is UploadStatus.PENDING:
            logger.info(f"Cancelling queued upload {item.name}")
            self._queue.remove(item)
            if self._batch is not None:
                self._batch.cancelled.append(item)
            await self._events.emit("cancel", item)
            return True

        return False

    async def abandon(self) -> int:
        """Cancel everything still waiting or running. Returns how many items were cancelled."""
        pending = [item for item in self._queue if item.status is UploadStatus.PENDING]
        cancelled = 0
        # Pending first so the loop has nothing to start once the active item stops.
        for item in pending:
            if await self.cancel(item.id):
                cancelled += 1
        if self._active_item is not None and await self.cancel(self._active_item.id):
            cancelled += 1
        return cancelled

    async def discard(self, item_id: str) -> bool:
        """Drop a failed item from the queue."""
        item = self.get_item(item_id)
        if item is None or item.status is not UploadStatus.ERROR:
            return False
        self._queue.remove(item)
        await self._events.emit("queue", self.queue)
        return True

    async def delete_asset(self, url: str) -> bool:
        """
        Remove an asset from the host block and delete its file on the server.

        Local removal always happens; the return value only reports whether
        the server confirmed the delete.
        """
        assert self._deleter is not None, "UploadOrchestrator used outside 'async with'"
        if self._host is not None and self._host.remove_asset(url):
            await self._host.notify_change()
            await self._events.emit("change")
        return await self._deleter.delete(url)

    # Batch processing

    def _open_files(self, files: Iterable[FileLike]) -> Tuple[List[UploadFile], List[ValidationError]]:
        uploads: List[UploadFile] = []
        rejected: List[ValidationError] = []
        for f in files:
            if isinstance(f, UploadFile):
                uploads.append(f)
                continue
            try:
                uploads.append(self._validator.open_path(Path(f)))
            except ValidationError as e:
                logger.warning(f"Rejected {f}: {e}")
                rejected.append(e)
        return uploads, rejected

    async def _run_batch(self, items: List[UploadItem], rejected=None) -> BatchResult:
        assert self._selector is not None, "UploadOrchestrator used outside 'async with'"
        result = BatchResult(rejected=list(rejected or []))
        self._batch = result

        await self._signals.busy()
        try:
            for item in items:
                # Items cancelled while waiting are already gone from the queue.
                if item not in self._queue or item.status is not UploadStatus.PENDING:
                    continue
                await self._process(item, result)
            return await self._complete(items, result)
        except asyncio.CancelledError:
            for item in items:
                if item in self._queue and not item.is_terminal:
                    self._queue.remove(item)
                    result.cancelled.append(item)
            logger.info(f"Batch abandoned, dropped {len(result.cancelled)} unfinished item(s)")
            raise
        finally:
            self._batch = None
            self._active_item = None
            self._active_task = None
            await self._signals.free()

    async def _process(self, item: UploadItem, result: BatchResult) -> None:
        item.start()
        strategy = self._selector.select(item.file)
        bridge = ProgressBridge(
            item.file.size,
            window=self._config.speed_window,
            min_samples_for_eta=self._config.min_samples_for_eta,
        )

        async def on_progress(percent: int):
            if not item.update_progress(percent):
                return
            await self._events.emit("progress", item, item.progress)
            await self._events.emit("metrics", item, bridge.on_progress(percent))

        async def on_status(message: str, phase: str):
            await self._events.emit("status", item, message, phase)
            await self._events.emit("metrics", item, bridge.on_status(message, phase))

        strategy.set_progress_callback(on_progress).set_status_callback(on_status)

        self._active_item = item
        self._active_task = asyncio.create_task(strategy.execute(item.file))
        try:
            asset = await self._active_task
        except asyncio.CancelledError:
            if item.id not in self._cancel_requested:
                # Our own task is being cancelled: abandon the batch.
                raise
            self._cancel_requested.discard(item.id)
            self._queue.remove(item)
            result.cancelled.append(item)
            logger.info(f"Cancelled {item.name}")
            await self._events.emit("cancel", item)
            return
        except UploadError as e:
            await self._fail(item, bridge, str(e))
            return
        except Exception as e:
            logger.exception(f"Unexpected error uploading {item.name}")
            await self._fail(item, bridge, str(e) or e.__class__.__name__)
            return
        finally:
            self._active_item = None
            self._active_task = None

        await self._succeed(item, asset)

    async def _succeed(self, item: UploadItem, asset: AssetDescriptor) -> None:
        asset = self._registrar.commit(self._host, asset)
        item.succeed(asset)
        logger.info(f"Uploaded {item.name} -> {asset.url}")
        await self._events.emit("complete", item, asset)

    async def _fail(self, item: UploadItem, bridge: ProgressBridge, message: str) -> None:
        item.fail(message)
        logger.warning(f"Upload failed for {item.name}: {item.error}")
        await self._events.emit("metrics", item, bridge.on_error(item.error))
        await self._events.emit("error", item, item.error)

    async def _complete(self, items: List[UploadItem], result: BatchResult) -> BatchResult:
        for item in items:
            if item.status is UploadStatus.SUCCESS:
                result.succeeded.append(item)
            elif item.status is UploadStatus.ERROR:
                result.failed.append(item)

        # Succeeded items are already committed to the host; only failures stay queued.
        self._queue = [item for item in self._queue if item.status is not UploadStatus.SUCCESS]

        if result.succeeded:
            if self._host is not None:
                await self._host.notify_change()
            await self._events.emit("change")

        await self._events.emit("queue", self.queue)
        logger.info(
            f"Batch finished: {len(result.succeeded)} succeeded, "
            f"{len(result.failed)} failed, {len(result.cancelled)} cancelled"
        )
        await self._events.emit("finish", result)
        return result
