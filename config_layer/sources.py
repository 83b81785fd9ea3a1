"""
Property sources: loaders that locate raw sources and parsers that turn them into flat tables.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, Mapping, Optional, Union

import yaml

from .errors import SourceLoadWarning

SOURCE_SUFFIXES = (
    ('.properties', 'properties'),
    ('.yaml', 'yaml'),
    ('.yml', 'yaml'),
)

_ESCAPES = {'t': '\t', 'n': '\n', 'r': '\r', 'f': '\f'}
_WHITESPACE = ' \t\f'


@dataclass
class ConfigSource:
    """Configuration source metadata."""
    name: str
    path: Optional[str] = None
    priority: int = 0
    last_modified: Optional[datetime] = None
    data: Dict[str, str] = field(default_factory=dict)
    is_valid: bool = True
    error_message: Optional[str] = None


@dataclass(frozen=True)
class RawSource:
    """A located property source before parsing."""
    name: str
    format: str
    payload: Union[bytes, Mapping[str, Any]]
    path: Optional[str] = None
    last_modified: Optional[datetime] = None


class PropertySourceLoader(ABC):
    """Locates property sources by logical name."""

    @abstractmethod
    def open(self, name: str) -> Optional[RawSource]:
        """Return the raw source, or None when it does not exist.

        Raises SourceLoadWarning when the source exists but cannot be read.
        """

    def describe(self) -> str:
        return type(self).__name__


class FilesystemPropertyLoader(PropertySourceLoader):
    """Loads ``<name>.properties`` / ``<name>.yaml`` / ``<name>.yml`` from a directory."""

    def __init__(self, base_path: Union[str, Path] = 'config'):
        self.base_path = Path(base_path)

    def open(self, name: str) -> Optional[RawSource]:
        for suffix, fmt in SOURCE_SUFFIXES:
            path = self.base_path / f"{name}{suffix}"
            if not path.is_file():
                continue
            try:
                payload = path.read_bytes()
                last_modified = datetime.fromtimestamp(path.stat().st_mtime)
            except OSError as e:
                raise SourceLoadWarning(str(path), str(e)) from e
            return RawSource(name=name, format=fmt, payload=payload,
                             path=str(path), last_modified=last_modified)
        return None

    def describe(self) -> str:
        return str(self.base_path)


class MappingPropertyLoader(PropertySourceLoader):
    """In-memory loader; each source is either a mapping or properties text."""

    def __init__(self, sources: Optional[Mapping[str, Union[str, Mapping[str, Any]]]] = None):
        self.sources = dict(sources or {})

    def open(self, name: str) -> Optional[RawSource]:
        if name not in self.sources:
            return None
        content = self.sources[name]
        if isinstance(content, str):
            return RawSource(name=name, format='properties', payload=content.encode('utf-8'))
        return RawSource(name=name, format='mapping', payload=content)


def _logical_lines(text: str) -> Iterator[str]:
    pending = None
    for raw in text.splitlines():
        line = raw.lstrip(_WHITESPACE)
        if pending is None and (not line or line[0] in '#!'):
            continue
        trailing = len(line) - len(line.rstrip('\\'))
        if trailing % 2 == 1:
            pending = (pending or '') + line[:-1]
            continue
        yield (pending or '') + line
        pending = None
    if pending is not None:
        yield pending


def _unescape(text: str) -> str:
    if '\\' not in text:
        return text

    out = []
    i = 0
    while i < len(text):
        char = text[i]
        if char != '\\':
            out.append(char)
            i += 1
            continue
        i += 1
        if i >= len(text):
            break
        char = text[i]
        if char == 'u':
            digits = text[i + 1:i + 5]
            if len(digits) != 4:
                raise ValueError(f"Malformed \\uxxxx encoding: {text!r}")
            out.append(chr(int(digits, 16)))
            i += 5
            continue
        out.append(_ESCAPES.get(char, char))
        i += 1
    return ''.join(out)


def _split_entry(line: str):
    i = 0
    while i < len(line):
        char = line[i]
        if char == '\\':
            i += 2
            continue
        if char in '=:' or char in _WHITESPACE:
            break
        i += 1

    key = line[:i]
    value = line[i:].lstrip(_WHITESPACE)
    if value[:1] in ('=', ':'):
        value = value[1:].lstrip(_WHITESPACE)
    return _unescape(key), _unescape(value)


def parse_properties(text: str) -> Dict[str, str]:
    """Parse java-properties style ``key=value`` text. Later keys win."""
    table = {}
    for line in _logical_lines(text):
        key, value = _split_entry(line)
        table[key] = value
    return table


def _scalar_to_str(value: Any) -> str:
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (list, tuple)):
        return ','.join(_scalar_to_str(item) for item in value)
    return str(value)


def flatten_yaml(data: Mapping[str, Any], prefix: str = '') -> Dict[str, str]:
    """Flatten nested mappings into dot-separated keys with string values."""
    flat = {}
    for key, value in data.items():
        full_key = f"{prefix}{key}"
        if isinstance(value, Mapping):
            flat.update(flatten_yaml(value, full_key + '.'))
        else:
            flat[full_key] = _scalar_to_str(value)
    return flat


def parse_source(raw: RawSource) -> Dict[str, str]:
    """Parse a raw source into a flat table; malformed content raises SourceLoadWarning."""
    label = raw.path or raw.name
    try:
        if raw.format == 'mapping':
            return flatten_yaml(raw.payload)

        text = raw.payload.decode('utf-8-sig')
        if raw.format == 'yaml':
            data = yaml.safe_load(text)
            if data is None:
                return {}
            if not isinstance(data, dict):
                raise SourceLoadWarning(label, f"YAML root must be a mapping, got {type(data).__name__}")
            return flatten_yaml(data)

        return parse_properties(text)
    except (UnicodeDecodeError, ValueError, yaml.YAMLError) as e:
        raise SourceLoadWarning(label, str(e)) from e
