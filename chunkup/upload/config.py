"""Upload configuration"""

import re
from dataclasses import dataclass, field, fields, replace, asdict
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Union
import logging

import yaml

from ..exceptions import ConfigError

logger = logging.getLogger(__name__)

HTTP_METHODS = {'POST', 'PUT', 'PATCH'}

_SIZE_RE = re.compile(r'^\s*(\d+(?:\.\d+)?)\s*([kmgt]?)b?\s*$', re.IGNORECASE)
_MULTIPLIERS = {'': 1, 'k': 1024, 'm': 1024 ** 2, 'g': 1024 ** 3, 't': 1024 ** 4}


def parse_size(size: Union[int, float, str, None]) -> int:
    """
    Parse a byte size given as a number or a string like '512kb' or '5mb'
    Multipliers are 1024-based
    """
    if size is None or size is False:
        return 0
    if isinstance(size, bool):
        raise ConfigError(f"Invalid size: {size!r}")
    if isinstance(size, (int, float)):
        return int(size)

    match = _SIZE_RE.match(str(size))
    if not match:
        raise ConfigError(f"Invalid size: {size!r}")

    number, unit = match.groups()
    return int(float(number) * _MULTIPLIERS[unit.lower()])


@dataclass
class UploadConfig:
    """Transfer options recognized by FileUploader"""
    url: Optional[str] = None
    chunk_size: int = 0  # 0 disables chunking
    multipart: bool = True
    http_method: str = "POST"
    params: Dict[str, str] = field(default_factory=dict)
    headers: Optional[Dict[str, str]] = None
    file_data_name: str = "file"
    send_file_name: bool = True
    stop_on_fail: bool = True

    def __post_init__(self):
        self.chunk_size = parse_size(self.chunk_size)
        if self.chunk_size < 0:
            raise ConfigError(f"chunk_size must not be negative: {self.chunk_size}")

        self.http_method = str(self.http_method).upper()
        if self.http_method not in HTTP_METHODS:
            raise ConfigError(f"Unsupported http_method: {self.http_method}")

        if not isinstance(self.params, Mapping):
            raise ConfigError("params must be a mapping")
        self.params = {str(k): v for k, v in self.params.items()}

        if self.headers is False:
            self.headers = None
        if self.headers is not None:
            if not isinstance(self.headers, Mapping):
                raise ConfigError("headers must be a mapping")
            self.headers = {str(k): str(v) for k, v in self.headers.items()}

        if not self.file_data_name:
            raise ConfigError("file_data_name must not be empty")

    @classmethod
    def keys(cls) -> set:
        return {f.name for f in fields(cls)}

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> 'UploadConfig':
        """Build from a mapping, ignoring unrecognized keys"""
        return cls().merge(data or {})

    @classmethod
    def from_yaml(cls, path: Path) -> 'UploadConfig':
        """Load from a YAML file; an 'upload' section is used when present"""
        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, Mapping):
            raise ConfigError(f"{path}: expected a mapping")
        if isinstance(data.get('upload'), Mapping):
            data = data['upload']

        logger.debug(f"Loaded upload options from {path}")
        return cls.from_dict(data)

    def merge(self, overrides: Mapping[str, Any],
              locked: Iterable[str] = ()) -> 'UploadConfig':
        """
        Return a new config with recognized keys from overrides applied
        Unknown keys and keys in locked are skipped; map values are
        replaced, not merged (last write wins)
        """
        known = self.keys()
        locked = set(locked)
        changes = {}

        for key, value in overrides.items():
            if key not in known:
                continue
            if key in locked:
                logger.debug(f"Option {key} cannot be changed now, skipped")
                continue
            changes[key] = dict(value) if isinstance(value, Mapping) else value

        if not changes:
            return self
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
