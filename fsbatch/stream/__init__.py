# stream/__init__.py

from .reader import END_OF_STREAM, RecordReader, StreamState
from .accumulator import BatchAccumulator

__all__ = [
    "END_OF_STREAM",
    "RecordReader",
    "StreamState",
    "BatchAccumulator",
]
