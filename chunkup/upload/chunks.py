"""Chunk bookkeeping"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Dict, Iterator, List, Optional
import logging

from ..exceptions import InvalidChunkRange

logger = logging.getLogger(__name__)


class ChunkState(Enum):
    """Outcome state of a single chunk"""
    PROCESSING = "processing"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class ChunkRecord:
    """
    Byte range [start, end) of a file plus its outcome
    A retried chunk is a new record under the same sequence number
    """
    seq: int
    start: int
    end: int
    total: int
    state: ChunkState = ChunkState.PROCESSING

    def __post_init__(self):
        if self.seq < 0 or not (0 <= self.start < self.end <= self.total):
            raise InvalidChunkRange(
                f"Invalid chunk #{self.seq}: [{self.start}, {self.end}) of {self.total}"
            )

    @property
    def size(self) -> int:
        return self.end - self.start

    def with_state(self, state: ChunkState) -> 'ChunkRecord':
        """Return the finished copy of a PROCESSING record"""
        if self.state is not ChunkState.PROCESSING:
            raise InvalidChunkRange(
                f"Chunk #{self.seq} already finished as {self.state.value}"
            )
        return replace(self, state=state)

    def descriptor(self) -> Dict:
        """Plain description used in chunk event payloads"""
        return {
            'seq': self.seq,
            'start': self.start,
            'end': self.end,
            'total': self.total
        }


class ChunkTable:
    """Chunk records keyed by sequence number"""

    def __init__(self):
        self._records: Dict[int, ChunkRecord] = {}

    def put(self, seq: int, record: ChunkRecord):
        """Insert or replace the record at seq"""
        self._records[seq] = record

    def get(self, seq: int) -> Optional[ChunkRecord]:
        return self._records.get(seq)

    def completed_bytes(self) -> int:
        """Sum of the ranges of all DONE records, independent of completion order"""
        return sum(
            record.size for record in self._records.values()
            if record.state is ChunkState.DONE
        )

    def failed(self) -> List[int]:
        return [r.seq for r in self if r.state is ChunkState.FAILED]

    def each(self, visitor: Callable[[ChunkRecord], None]):
        """Visit records in ascending sequence order"""
        for record in self:
            visitor(record)

    def clear(self):
        self._records.clear()

    def __iter__(self) -> Iterator[ChunkRecord]:
        for seq in sorted(self._records):
            yield self._records[seq]

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, seq) -> bool:
        return seq in self._records
