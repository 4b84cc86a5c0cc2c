"""
LocalStorage - filesystem backend used for development and tests.
"""

import logging
import os
import shutil
from datetime import datetime, timezone
from typing import List, Optional, Union

from .config import LocalConfig
from .storage import AccessCheck, FileInfo, Storage, join_path


class LocalStorage(Storage):
    """
    Storage backed by a directory on the local filesystem.

    Dotfiles are hidden from list(), but remain readable by path so that
    internal documents such as the progress record work unchanged.
    """

    backend_name = 'local'

    def __init__(self, config: LocalConfig, logger: Optional[logging.Logger] = None):
        """
        Initialize local storage.

        Args:
            config: Local configuration (root path + optional prefix)
            logger: Optional logger instance
        """
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        self.base_path = os.path.abspath(config.base_path)

    def _resolve(self, path: str) -> str:
        full = os.path.abspath(os.path.join(self.base_path, path.strip('/')))
        if full != self.base_path and not full.startswith(self.base_path + os.sep):
            raise ValueError(f"Path escapes content root: {path}")
        return full

    @staticmethod
    def _mtime(full_path: str) -> str:
        ts = os.path.getmtime(full_path)
        return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()

    def get(self, path: str) -> Optional[bytes]:
        full = self._resolve(path)
        if not os.path.isfile(full):
            return None
        with open(full, 'rb') as f:
            return f.read()

    def put(self, path: str, data: Union[bytes, str], content_type: str = 'application/octet-stream') -> None:
        full = self._resolve(path)
        os.makedirs(os.path.dirname(full), exist_ok=True)
        if isinstance(data, str):
            data = data.encode('utf-8')
        tmp_path = f"{full}.tmp"
        with open(tmp_path, 'wb') as f:
            f.write(data)
        os.replace(tmp_path, full)
        self.logger.debug(f"Wrote {path} ({len(data)} bytes, {content_type})")

    def delete(self, path: str) -> None:
        full = self._resolve(path)
        if os.path.isfile(full):
            os.remove(full)
            self.logger.debug(f"Deleted {path}")

    def list(self, prefix: str) -> List[FileInfo]:
        full = self._resolve(prefix)
        if not os.path.isdir(full):
            return []

        entries = []
        for name in sorted(os.listdir(full)):
            if name.startswith('.'):
                continue
            entry_path = os.path.join(full, name)
            is_dir = os.path.isdir(entry_path)
            entries.append(FileInfo(
                name=name,
                path=join_path(prefix, name),
                size=0 if is_dir else os.path.getsize(entry_path),
                last_modified=None if is_dir else self._mtime(entry_path),
                is_directory=is_dir,
            ))
        return entries

    def exists(self, path: str) -> bool:
        return os.path.exists(self._resolve(path))

    def move(self, src: str, dst: str) -> bool:
        src_full = self._resolve(src)
        if not os.path.isfile(src_full):
            return False
        dst_full = self._resolve(dst)
        os.makedirs(os.path.dirname(dst_full), exist_ok=True)
        shutil.move(src_full, dst_full)
        return True

    def check_access(self) -> AccessCheck:
        if not os.path.isdir(self.base_path):
            return AccessCheck(
                backend=self.backend_name,
                can_read=False,
                can_list=False,
                can_write=False,
                error=f"Content root does not exist: {self.base_path}",
            )
        return AccessCheck(
            backend=self.backend_name,
            can_read=os.access(self.base_path, os.R_OK),
            can_list=os.access(self.base_path, os.R_OK | os.X_OK),
            can_write=os.access(self.base_path, os.W_OK),
        )
