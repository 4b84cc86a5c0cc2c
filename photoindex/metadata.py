"""
Parsers for per-folder YAML metadata and Markdown front matter.

Parsers raise InvalidMetadataError on malformed input; callers decide
whether to fall back to defaults.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
import logging
from typing import Any, Dict, List, Optional, Tuple

import frontmatter
import yaml

from .errors import InvalidMetadataError
from .storage import Storage


GALLERY_FILE = 'gallery.yaml'
PHOTOS_FILE = 'photos.yaml'
PAGE_FILE = 'page.yaml'


@dataclass
class GalleryMetadata:
    """Settings declared in gallery.yaml."""
    title: Optional[str] = None
    description: Optional[str] = None
    cover: Optional[str] = None
    date: Optional[str] = None
    tags: Optional[List[str]] = None
    category: Optional[str] = None
    private: bool = False
    password: Optional[str] = None
    order: Optional[int] = None
    include_nested_photos: bool = True


@dataclass
class PhotoMetadata:
    """One entry of photos.yaml."""
    filename: str
    position: int
    title: Optional[str] = None
    description: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    hidden: bool = False
    order: Optional[int] = None

    @property
    def effective_order(self) -> int:
        return self.order if self.order is not None else self.position


def as_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def as_int(value: Any, path: str, key: str) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidMetadataError(path, f"'{key}' must be a number")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidMetadataError(path, f"'{key}' must be a number, got {value!r}")


def as_tags(value: Any, path: str) -> Optional[List[str]]:
    if value is None:
        return None
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        raise InvalidMetadataError(path, "'tags' must be a list")
    return [str(t).strip() for t in value if t is not None and str(t).strip()]


def _load_yaml(text: str, path: str) -> Any:
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise InvalidMetadataError(path, str(e)) from e


def decode_text(data: bytes, path: str) -> str:
    try:
        return data.decode('utf-8')
    except UnicodeDecodeError as e:
        raise InvalidMetadataError(path, f"not valid UTF-8 ({e.reason} at byte {e.start})") from e


def read_metadata(storage: Storage, path: str) -> Optional[str]:
    """
    Read a metadata file as text.

    Returns:
        The decoded text, or None if the file is missing

    Raises:
        InvalidMetadataError: if the file is not valid UTF-8
    """
    data = storage.get(path)
    if data is None:
        return None
    return decode_text(data, path)


def read_document(storage: Storage, path: str, logger: logging.Logger) -> Optional[str]:
    """Read a Markdown/HTML document. Undecodable bytes are logged and replaced."""
    data = storage.get(path)
    if data is None:
        return None
    try:
        return decode_text(data, path)
    except InvalidMetadataError as e:
        logger.warning(f"{e}; replacing undecodable bytes")
        return data.decode('utf-8', errors='replace')


def parse_gallery_yaml(text: str, path: str = GALLERY_FILE) -> GalleryMetadata:
    """
    Parse gallery.yaml content.

    Args:
        text: Raw YAML
        path: Source path, for error messages

    Returns:
        GalleryMetadata (defaults for an empty document)
    """
    data = _load_yaml(text, path)
    if data is None:
        return GalleryMetadata()
    if not isinstance(data, dict):
        raise InvalidMetadataError(path, "expected a mapping at top level")

    include_nested = data.get('includeNestedPhotos', data.get('include_nested_photos', True))
    return GalleryMetadata(
        title=as_str(data.get('title')),
        description=as_str(data.get('description')),
        cover=as_str(data.get('cover')),
        date=as_str(data.get('date')),
        tags=as_tags(data.get('tags'), path),
        category=as_str(data.get('category')),
        private=bool(data.get('private', False)),
        password=as_str(data.get('password')),
        order=as_int(data.get('order'), path, 'order'),
        include_nested_photos=bool(include_nested) if include_nested is not None else True,
    )


def parse_photos_yaml(text: str, path: str = PHOTOS_FILE) -> List[PhotoMetadata]:
    """
    Parse photos.yaml content: an ordered list keyed by filename.

    Entries without a filename are ignored; a duplicate filename keeps its
    first entry.
    """
    data = _load_yaml(text, path)
    if data is None:
        return []
    if isinstance(data, dict) and isinstance(data.get('photos'), list):
        data = data['photos']
    if not isinstance(data, list):
        raise InvalidMetadataError(path, "expected a list of photo entries")

    entries = []
    seen = set()
    for position, item in enumerate(data):
        if not isinstance(item, dict) or not item.get('filename'):
            continue
        filename = str(item['filename'])
        if filename in seen:
            continue
        seen.add(filename)
        entries.append(PhotoMetadata(
            filename=filename,
            position=position,
            title=as_str(item.get('title')),
            description=as_str(item.get('description')),
            tags=as_tags(item.get('tags'), path) or [],
            hidden=bool(item.get('hidden', False)),
            order=as_int(item.get('order'), path, 'order'),
        ))
    return entries


def parse_page_yaml(text: str, path: str = PAGE_FILE) -> Dict[str, Any]:
    data = _load_yaml(text, path)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidMetadataError(path, "expected a mapping at top level")
    return data


def parse_front_matter(text: str, path: str) -> Tuple[Dict[str, Any], str]:
    """
    Split a Markdown/HTML document into (front matter, body).

    Raises:
        InvalidMetadataError: if the front matter block is not valid YAML
    """
    try:
        post = frontmatter.loads(text)
    except yaml.YAMLError as e:
        raise InvalidMetadataError(path, str(e)) from e
    if not isinstance(post.metadata, dict):
        raise InvalidMetadataError(path, "front matter must be a mapping")
    return dict(post.metadata), post.content
