"""Chunk scheduling for a single FileUploader"""

import math
from typing import Any, Dict, Mapping, Optional
import logging

from .chunks import ChunkRecord, ChunkState
from .lifecycle import UploadState
from ..exceptions import ConfigError

logger = logging.getLogger(__name__)


class ChunkScheduler:
    """
    Picks the next byte range, submits it to the queue and accounts for
    its outcome in the uploader's chunk table

    Completions never call plan_chunk directly; continuation goes through
    the uploader's defer hook so bursts of completions do not nest.
    """

    def __init__(self, uploader):
        self.uploader = uploader
        self.offset = 0  # bytes handed out by automatic sequencing

    def plan_chunk(self, seq: Optional[int] = None,
                   options: Optional[Mapping[str, Any]] = None,
                   keep_going: bool = False) -> bool:
        """
        Submit chunk seq (1-based), or the next undispatched one
        Returns False when the range falls outside the file or the chunk
        is already uploaded
        """
        up = self.uploader
        up.require_state(UploadState.RUNNING)

        if options:
            up.set_options({k: v for k, v in options.items() if k != 'chunk_size'})

        config = up.options
        chunk_size = config.chunk_size
        if chunk_size <= 0:
            raise ConfigError("Chunking is disabled (chunk_size is 0)")

        file = up.get_file()
        size = file.size

        auto = seq is None
        if auto:
            # Ceiling division: offset equals size once the short last chunk is out
            seq = -(-self.offset // chunk_size) + 1
            # Skip sequences already submitted explicitly
            while seq in up.chunks:
                seq += 1
        else:
            seq = int(seq)
            current = up.chunks.get(seq)
            if current is not None and current.state is ChunkState.DONE:
                logger.debug(f"Chunk #{seq} of {up.name} already uploaded")
                return False
        start = (seq - 1) * chunk_size
        end = min(start + chunk_size, size)

        if start < 0 or start >= size:
            logger.debug(f"No chunk #{seq} in {up.name} ({size} bytes)")
            return False

        record = ChunkRecord(seq=seq, start=start, end=end, total=size)
        up.chunks.put(seq, record)
        if auto:
            self.offset = max(self.offset, end)

        params = dict(config.params)
        params['chunk'] = seq - 1
        params['chunks'] = math.ceil(size / chunk_size)
        transfer = up.create_transfer(
            file.slice(start, end, file.type),
            config.merge({'params': params})
        )
        self._wire(transfer, record, keep_going)

        logger.debug(f"Queued chunk #{seq} [{start}, {end}) of {up.name}")
        queue = up.queue
        queue.add_item(transfer)

        if keep_going and queue.count_spare_slots():
            up.defer(self.resume)

        return True

    def resume(self):
        """Deferred continuation of the keep-going loop"""
        if self.uploader.state is UploadState.RUNNING:
            self.plan_chunk(keep_going=True)

    def _wire(self, transfer, record: ChunkRecord, keep_going: bool):
        up = self.uploader

        def on_progress(processed, total=None):
            if up.chunks.get(record.seq) is record:
                up.progress(up.chunks.completed_bytes() + processed, record.total)

        def on_done(result=None):
            transfer.destroy()
            if not self._settle(record, ChunkState.DONE):
                return

            result = result or {}
            up.trigger('chunkuploaded', self._payload(record, result))

            completed = up.chunks.completed_bytes()
            up.progress(completed, record.total)

            if completed >= record.total:
                up.done(result)
            elif keep_going:
                up.defer(self.resume)

        def on_failed(result=None):
            transfer.destroy()
            if not self._settle(record, ChunkState.FAILED):
                return

            result = result or {}
            logger.warning(
                f"Chunk #{record.seq} of {up.name} failed "
                f"(status {result.get('status')})"
            )
            up.trigger('chunkuploadfailed', self._payload(record, result))

            if up.options.stop_on_fail:
                up.failed(result)

        transfer.bind('progress', on_progress)
        transfer.bind('done', on_done)
        transfer.bind('failed', on_failed)

    def _settle(self, record: ChunkRecord, state: ChunkState) -> bool:
        """Record the outcome unless the record was replaced or the uploader is gone"""
        up = self.uploader
        if up.state is UploadState.DESTROYED:
            return False

        if up.chunks.get(record.seq) is not record:
            logger.warning(f"Ignoring stale outcome of chunk #{record.seq} of {up.name}")
            return False

        up.chunks.put(record.seq, record.with_state(state))
        return True

    @staticmethod
    def _payload(record: ChunkRecord, result: Mapping) -> Dict:
        payload = record.descriptor()
        payload.update(result)
        return payload
