"""
Storage - byte-oriented access to the content tree.

Paths are "/"-separated and relative to the content root. A missing object
is reported as None / False, never as an exception.
"""

import posixpath
from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from typing import List, Optional, Union


@dataclass
class FileInfo:
    """
    One entry returned by Storage.list().

    Attributes:
        name: Last path component
        path: Full path relative to the content root
        size: Size in bytes (0 for directories)
        last_modified: ISO timestamp, or None for directories
        is_directory: True for folders / common prefixes
    """
    name: str
    path: str
    size: int = 0
    last_modified: Optional[str] = None
    is_directory: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class AccessCheck:
    """
    Result of a side-effect-free permission check.

    A None field means the capability could not be determined without
    modifying storage.
    """
    backend: str
    can_read: Optional[bool] = None
    can_list: Optional[bool] = None
    can_write: Optional[bool] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.can_read is not False and self.can_list is not False

    def to_dict(self) -> dict:
        data = asdict(self)
        data['ok'] = self.ok
        return data


def join_path(*parts: str) -> str:
    """Join path components, dropping empty ones and stray slashes."""
    cleaned = [p.strip('/') for p in parts if p and p.strip('/')]
    return '/'.join(cleaned)


def split_path(path: str):
    """Split a path into (directory, filename)."""
    return posixpath.split(path.strip('/'))


class Storage(ABC):
    """
    Abstract storage backend.

    Implementations: LocalStorage (filesystem) and S3Storage (boto3).
    """

    backend_name = 'abstract'

    @abstractmethod
    def get(self, path: str) -> Optional[bytes]:
        """Return object bytes, or None if missing."""

    def get_text(self, path: str, encoding: str = 'utf-8') -> Optional[str]:
        """Return object contents decoded as text, or None if missing."""
        data = self.get(path)
        if data is None:
            return None
        return data.decode(encoding)

    @abstractmethod
    def put(self, path: str, data: Union[bytes, str], content_type: str = 'application/octet-stream') -> None:
        """Create or overwrite an object."""

    @abstractmethod
    def delete(self, path: str) -> None:
        """Delete an object. Deleting a missing object is not an error."""

    @abstractmethod
    def list(self, prefix: str) -> List[FileInfo]:
        """List the immediate children (files and folders) of a folder."""

    @abstractmethod
    def exists(self, path: str) -> bool:
        """Check whether an object (or folder) exists."""

    def move(self, src: str, dst: str) -> bool:
        """
        Move an object.

        Returns:
            False if the source did not exist
        """
        data = self.get(src)
        if data is None:
            return False
        self.put(dst, data)
        self.delete(src)
        return True

    @abstractmethod
    def check_access(self) -> AccessCheck:
        """Report read/list/write capability without modifying storage."""
