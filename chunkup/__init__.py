"""Chunked single-file upload orchestration"""

from .exceptions import ChunkupError, LifecycleError, ConfigError, InvalidChunkRange
from .upload import FileUploader, File, UploadConfig, UploadState
from .transfer import UploadQueue, ChunkUploader, LocalFile, Blob

__version__ = "1.0.0"

__all__ = [
    'FileUploader',
    'File',
    'UploadConfig',
    'UploadState',
    'UploadQueue',
    'ChunkUploader',
    'LocalFile',
    'Blob',
    'ChunkupError',
    'LifecycleError',
    'ConfigError',
    'InvalidChunkRange'
]
