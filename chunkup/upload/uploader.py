"""Per-file upload orchestration"""

import asyncio
from typing import Any, Callable, List, Mapping, Optional, Union
import logging

from .chunks import ChunkTable
from .config import UploadConfig
from .lifecycle import Lifecycle, UploadState, guid
from .scheduler import ChunkScheduler
from ..events import EventEmitter
from ..exceptions import LifecycleError
from ..transfer.http import ChunkUploader

logger = logging.getLogger(__name__)


def call_soon(callback: Callable, *args):
    """Run callback on a later iteration of the running event loop"""
    asyncio.get_running_loop().call_soon(callback, *args)


class FileUploader:
    """
    Uploads one file through a shared UploadQueue, either whole or as
    byte-range chunks

    Events: progress(loaded, total), done(result), failed(result),
    chunkuploaded(chunk), chunkuploadfailed(chunk), statechanged(new, old),
    destroy()
    """

    def __init__(self, file_ref, queue,
                 transfer_factory: Optional[Callable] = None,
                 defer: Optional[Callable] = None):
        self._file = file_ref
        self._queue = queue
        self._transfer_factory = transfer_factory or ChunkUploader
        self._defer = defer or call_soon

        self.events = EventEmitter()
        self._lifecycle = Lifecycle(self.events)
        self._options = UploadConfig()
        self._chunks = ChunkTable()
        self._scheduler = ChunkScheduler(self)

        self.uid = guid()
        self.id = self.uid  # deprecated alias

        # Sent as the 'name' param when send_file_name is on
        self.name = file_ref.name
        self.target_name: Optional[str] = None  # deprecated, overrides name
        self.type = file_ref.type
        self.size = file_ref.size
        self.orig_size = file_ref.size

    # Lifecycle

    @property
    def state(self) -> UploadState:
        return self._lifecycle.state

    def require_state(self, *states: UploadState):
        self._lifecycle.require(*states)

    def start(self, options: Optional[Mapping[str, Any]] = None):
        """Begin the upload; only valid once, from CREATED"""
        self.require_state(UploadState.CREATED)

        if options:
            self.set_options(options)

        self._lifecycle.transition(UploadState.RUNNING)

        if self._options.send_file_name:
            params = dict(self._options.params)
            params['name'] = self.target_name or self.name
            self._options = self._options.merge({'params': params})

        chunk_size = self._options.chunk_size
        logger.info(
            f"Uploading {self.name} ({self.size} bytes) to {self._options.url}"
            + (f" in chunks of {chunk_size}" if chunk_size else "")
        )

        if chunk_size and self._file.size > 0:
            self._scheduler.plan_chunk(keep_going=True)
        else:
            self._upload_whole()

    def _upload_whole(self):
        up = self.create_transfer(self._file, self._options)

        def on_done(result=None):
            up.destroy()
            self.done(result or {})

        def on_failed(result=None):
            up.destroy()
            self.failed(result or {})

        up.bind('progress', lambda loaded, total=None: self.progress(loaded, total))
        up.bind('done', on_done)
        up.bind('failed', on_failed)
        self._queue.add_item(up)

    def progress(self, loaded: int, total: Optional[int] = None):
        if self.state is UploadState.RUNNING:
            self.trigger('progress', loaded, self.size if total is None else total)

    def done(self, result=None):
        if self.state is not UploadState.RUNNING:
            logger.debug(f"Ignoring late completion of {self.name} ({self.state.value})")
            return

        self._lifecycle.transition(UploadState.DONE)
        logger.info(f"Uploaded {self.name}")
        self.trigger('done', result)

    def failed(self, result=None):
        if self.state is not UploadState.RUNNING:
            logger.debug(f"Ignoring late failure of {self.name} ({self.state.value})")
            return

        self._lifecycle.transition(UploadState.FAILED)
        logger.info(f"Upload of {self.name} failed")
        self.trigger('failed', result)

    def destroy(self):
        """Release the file and queue; safe to call more than once"""
        if self._lifecycle.destroyed:
            return

        self.trigger('destroy')
        self._lifecycle.transition(UploadState.DESTROYED)
        self.events.unbind()

        # In-flight transfers stay with the queue owner
        self._file = None
        self._queue = None
        logger.debug(f"Destroyed uploader {self.uid}")

    # Events

    def bind(self, event: str, handler: Callable):
        self.events.bind(event, handler)

    def unbind(self, event: Optional[str] = None, handler: Optional[Callable] = None):
        self.events.unbind(event, handler)

    def trigger(self, event: str, *args):
        self.events.trigger(event, *args)

    # Options

    @property
    def options(self) -> UploadConfig:
        return self._options

    def set_option(self, option: Union[str, Mapping[str, Any]], value: Any = None):
        if isinstance(option, Mapping):
            self.set_options(option)
        else:
            self.set_options({option: value})

    def set_options(self, options: Mapping[str, Any]):
        """Apply recognized options; chunk_size is frozen once started"""
        if self._lifecycle.destroyed:
            raise LifecycleError("Uploader has been destroyed")

        locked = () if self.state is UploadState.CREATED else ('chunk_size',)
        self._options = self._options.merge(options, locked=locked)

    # File and collaborators

    def get_file(self):
        if self._lifecycle.destroyed:
            raise LifecycleError("Uploader has been destroyed")
        return self._file

    def get_source(self):
        """Deprecated, use get_file()"""
        return self.get_file()

    def get_native(self):
        """Deprecated, underlying path or bytes of the file"""
        return self.get_file().get_source()

    @property
    def queue(self):
        if self._lifecycle.destroyed:
            raise LifecycleError("Uploader has been destroyed")
        return self._queue

    @property
    def chunks(self) -> ChunkTable:
        return self._chunks

    def create_transfer(self, blob, options: UploadConfig):
        return self._transfer_factory(blob, options)

    def defer(self, callback: Callable, *args):
        self._defer(callback, *args)

    # Chunks

    def upload_chunk(self, seq: Optional[int] = None,
                     options: Optional[Mapping[str, Any]] = None,
                     keep_going: bool = False) -> bool:
        """Submit one chunk, e.g. to retry a failed sequence number"""
        return self._scheduler.plan_chunk(seq, options, keep_going)

    def failed_chunks(self) -> List[int]:
        return self._chunks.failed()

    def __repr__(self):
        return f"<FileUploader {self.uid} {self.name!r} {self.state.value}>"


# Backward compatible alias
File = FileUploader
