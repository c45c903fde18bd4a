"""Strategy selection by payload size."""
import logging
from typing import Any, Callable, Optional, Type

from ..models import AssetDescriptor, UploadConfig, UploadFile
from ..protocols import IAPIClient, ITransferStrategy
from ..registrar import ResultRegistrar
from .base import TransferStrategy
from .chunked import ChunkedStrategy
from .remote import RemoteUrlStrategy
from .single import SingleShotStrategy

logger = logging.getLogger(__name__)


def strategy_class_for(size: int, threshold: int) -> Type[TransferStrategy]:
    """Files at or above the threshold are chunked."""
    if size >= threshold:
        return ChunkedStrategy
    return SingleShotStrategy


class StrategySelector:
    """Picks a transfer strategy per file and hands back a fresh instance."""

    def __init__(
        self,
        client: IAPIClient,
        config: Optional[UploadConfig] = None,
        registrar: Optional[ResultRegistrar] = None,
    ):
        self._client = client
        self._config = config or UploadConfig()
        self._registrar = registrar or ResultRegistrar(self._config)

    def select(self, file: UploadFile) -> ITransferStrategy:
        if file.source_url:
            cls = RemoteUrlStrategy
        else:
            cls = strategy_class_for(file.size, self._config.single_shot_threshold)
        strategy = cls(self._client, self._config, self._registrar)
        logger.info(f"Using {strategy.get_name()} upload strategy for {file.name} ({file.size / (1024 * 1024):.1f}MB)")
        return strategy

    async def execute(
        self,
        file: UploadFile,
        on_progress: Optional[Callable[[int], Any]] = None,
        on_status: Optional[Callable[[str, str], Any]] = None,
    ) -> AssetDescriptor:
        """Select and run a strategy in one call."""
        strategy = self.select(file)
        if on_progress is not None:
            strategy.set_progress_callback(on_progress)
        if on_status is not None:
            strategy.set_status_callback(on_status)
        return await strategy.execute(file)
