"""Transfer strategies and their selector."""
from .base import TransferStrategy
from .chunked import ChunkedStrategy
from .remote import RemoteUrlStrategy
from .selector import StrategySelector, strategy_class_for
from .single import SingleShotStrategy

__all__ = [
    "TransferStrategy",
    "SingleShotStrategy",
    "ChunkedStrategy",
    "RemoteUrlStrategy",
    "StrategySelector",
    "strategy_class_for",
]
