"""Exception hierarchy"""


class ChunkupError(Exception):
    """Base class for all chunkup errors"""


class LifecycleError(ChunkupError, RuntimeError):
    """Operation invoked in a state that does not allow it"""


class ConfigError(ChunkupError, ValueError):
    """Invalid value for a recognized configuration key"""


class InvalidChunkRange(ChunkupError, ValueError):
    """Chunk byte range outside of the file bounds"""
