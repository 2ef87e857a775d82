from .chunks import ChunkRecord, ChunkState, ChunkTable
from .config import UploadConfig, parse_size
from .lifecycle import Lifecycle, UploadState, guid
from .scheduler import ChunkScheduler
from .uploader import FileUploader, File

__all__ = [
    'ChunkRecord',
    'ChunkState',
    'ChunkTable',
    'UploadConfig',
    'parse_size',
    'Lifecycle',
    'UploadState',
    'guid',
    'ChunkScheduler',
    'FileUploader',
    'File'
]
