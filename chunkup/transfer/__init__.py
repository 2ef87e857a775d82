from .source import Blob, FileSlice, LocalFile
from .queue import UploadQueue
from .http import ChunkUploader

__all__ = [
    'Blob',
    'FileSlice',
    'LocalFile',
    'UploadQueue',
    'ChunkUploader'
]
