"""Pytest configuration and fixtures"""

import pytest
import tempfile
import shutil
from pathlib import Path

from chunkup.events import EventEmitter
from chunkup.transfer import Blob
from chunkup.upload import FileUploader


class FakeTransfer(EventEmitter):
    """Transfer unit driven by the test instead of the network"""

    def __init__(self, blob, options):
        super().__init__()
        self.blob = blob
        self.options = options
        self.destroyed = False
        self.ran = False

    async def run(self):
        self.ran = True

    def destroy(self):
        self.destroyed = True
        self.unbind()

    def report(self, processed):
        self.trigger('progress', processed, self.blob.size)

    def succeed(self, result=None):
        self.trigger('done', result or {'status': 200})

    def fail(self, result=None):
        self.trigger('failed', result or {'status': 500})


class FakeQueue:
    """Records submitted units; spare slot count is set by the test"""

    def __init__(self, spare=0):
        self.items = []
        self.spare = spare

    def add_item(self, item):
        self.items.append(item)

    def count_spare_slots(self):
        return self.spare


class ManualDefer:
    """Collects deferred callbacks until the test runs them"""

    def __init__(self):
        self.calls = []

    def __call__(self, callback, *args):
        self.calls.append((callback, args))

    def run_all(self):
        while self.calls:
            callback, args = self.calls.pop(0)
            callback(*args)


class Recorder:
    """Collects uploader events as (name, args) tuples"""

    EVENTS = ('progress', 'done', 'failed', 'chunkuploaded', 'chunkuploadfailed')

    def __init__(self, uploader):
        self.events = []
        for name in self.EVENTS:
            uploader.bind(name, self._handler(name))

    def _handler(self, name):
        return lambda *args: self.events.append((name, args))

    def named(self, name):
        return [args for event, args in self.events if event == name]


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests"""
    tmpdir = tempfile.mkdtemp()
    yield Path(tmpdir)
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def queue():
    return FakeQueue()


@pytest.fixture
def defer():
    return ManualDefer()


@pytest.fixture
def make_uploader(queue, defer):
    """Factory for uploaders wired to the fake queue and manual deferral"""
    def _make(size=10, name="data.bin"):
        blob = Blob(bytes(range(256)) * (size // 256) + bytes(size % 256),
                    name=name, type="application/octet-stream")
        return FileUploader(blob, queue, transfer_factory=FakeTransfer, defer=defer)
    return _make
