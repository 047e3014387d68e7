"""Deal snapshots and the derived board index."""

from src.dealflow.board.index import build_index, summarize
from src.dealflow.board.models import (
    BoardColumn,
    BoardIndex,
    BoardSummary,
    DealId,
    DealSnapshot,
    StateFigures,
)

__all__ = [
    "BoardColumn",
    "BoardIndex",
    "BoardSummary",
    "DealId",
    "DealSnapshot",
    "StateFigures",
    "build_index",
    "summarize",
]
