"""File references that can be sliced into byte ranges"""

import mimetypes
import os
from pathlib import Path
from typing import AsyncIterator, Optional, Union
import logging

import aiofiles

logger = logging.getLogger(__name__)

READ_PIECE_SIZE = 64 * 1024  # 64KB
DEFAULT_TYPE = "application/octet-stream"


def _clamp(start: int, end: Optional[int], size: int):
    end = size if end is None else end
    start = max(0, min(start, size))
    end = max(start, min(end, size))
    return start, end


class Blob:
    """In-memory file"""

    def __init__(self, data: bytes, name: str = "blob", type: Optional[str] = None):
        self.data = bytes(data)
        self.name = name
        self.type = type or DEFAULT_TYPE

    @property
    def size(self) -> int:
        return len(self.data)

    def slice(self, start: int = 0, end: Optional[int] = None,
              type: Optional[str] = None) -> 'Blob':
        start, end = _clamp(start, end, self.size)
        return Blob(self.data[start:end], self.name, type or self.type)

    async def read(self) -> bytes:
        return self.data

    async def iter_pieces(self, piece_size: int = READ_PIECE_SIZE) -> AsyncIterator[bytes]:
        for offset in range(0, self.size, piece_size):
            yield self.data[offset:offset + piece_size]

    def get_source(self) -> bytes:
        return self.data


class FileSlice:
    """Byte range [start, end) of a file on disk, read lazily"""

    def __init__(self, path: Path, start: int, end: int,
                 name: str, type: str):
        self.path = Path(path)
        self.start = start
        self.end = end
        self.name = name
        self.type = type

    @property
    def size(self) -> int:
        return self.end - self.start

    def slice(self, start: int = 0, end: Optional[int] = None,
              type: Optional[str] = None) -> 'FileSlice':
        start, end = _clamp(start, end, self.size)
        return FileSlice(self.path, self.start + start, self.start + end,
                         self.name, type or self.type)

    async def read(self) -> bytes:
        async with aiofiles.open(self.path, 'rb') as f:
            await f.seek(self.start)
            return await f.read(self.size)

    async def iter_pieces(self, piece_size: int = READ_PIECE_SIZE) -> AsyncIterator[bytes]:
        remaining = self.size
        async with aiofiles.open(self.path, 'rb') as f:
            await f.seek(self.start)
            while remaining > 0:
                piece = await f.read(min(piece_size, remaining))
                if not piece:
                    break
                remaining -= len(piece)
                yield piece

    def get_source(self) -> Path:
        return self.path


class LocalFile(FileSlice):
    """Whole file on disk"""

    def __init__(self, path: Union[str, Path], type: Optional[str] = None,
                 name: Optional[str] = None):
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"No such file: {path}")

        guessed, _ = mimetypes.guess_type(path.name)
        super().__init__(
            path, 0, os.path.getsize(path),
            name or path.name,
            type or guessed or DEFAULT_TYPE
        )
