"""
GalleryScanner - Walks galleries/ and produces GalleryEntry objects.
"""

import logging
from typing import List, Optional, Tuple

from .entries import GalleryEntry, PhotoEntry
from .errors import InvalidMetadataError
from .metadata import (
    GALLERY_FILE,
    PHOTOS_FILE,
    GalleryMetadata,
    PhotoMetadata,
    parse_gallery_yaml,
    parse_photos_yaml,
    read_metadata,
)
from .storage import FileInfo, Storage, join_path
from .utils import folder_name_to_title, natural_key, normalize_tag
from .variants import is_gallery_image, is_variant


GALLERIES_PATH = 'galleries'


def merge_photos(
    gallery_path: str,
    declared: List[PhotoMetadata],
    filenames: List[str]
) -> List[PhotoEntry]:
    """
    Merge photos.yaml declarations with the image files actually present.

    Declared entries keep their metadata and order. Undeclared files are
    appended after them in natural filename order. Declarations whose file
    is gone are dropped.

    Args:
        gallery_path: Gallery folder path
        declared: Parsed photos.yaml entries
        filenames: Image filenames found in the folder

    Returns:
        Photo entries sorted by (order, natural filename)
    """
    present = set(filenames)
    photos = []
    declared_names = set()

    for meta in declared:
        declared_names.add(meta.filename)
        if meta.filename not in present:
            continue
        photos.append(PhotoEntry(
            filename=meta.filename,
            path=join_path(gallery_path, meta.filename),
            order=meta.effective_order,
            hidden=meta.hidden,
            tags=list(meta.tags),
            title=meta.title,
            description=meta.description,
        ))

    undeclared = sorted((f for f in filenames if f not in declared_names), key=natural_key)
    for i, filename in enumerate(undeclared):
        photos.append(PhotoEntry(
            filename=filename,
            path=join_path(gallery_path, filename),
            order=len(declared) + i,
        ))

    photos.sort(key=lambda p: (p.order, natural_key(p.filename)))
    return photos


class GalleryScanner:
    """
    Scans the galleries/ tree recursively.

    A folder is a gallery if it holds image files or a gallery.yaml. Its slug
    is its folder path below galleries/.
    """

    def __init__(self, storage: Storage, logger: Optional[logging.Logger] = None):
        self.storage = storage
        self.logger = logger or logging.getLogger(__name__)

    def scan(self) -> List[GalleryEntry]:
        """
        Scan every gallery.

        Returns:
            Galleries in depth-first order, parents before children
        """
        galleries: List[GalleryEntry] = []
        self._scan_folder(GALLERIES_PATH, [], galleries)
        self.logger.info(f"Scanned {len(galleries)} galleries")
        return galleries

    def scan_gallery(self, gallery_path: str) -> Optional[GalleryEntry]:
        """Scan a single gallery folder (None if it is not a gallery)."""
        gallery_path = gallery_path.strip('/')
        slug = gallery_path[len(GALLERIES_PATH):].strip('/')
        listing = self.storage.list(gallery_path)
        return self._build_gallery(gallery_path, slug.split('/') if slug else [], listing)

    def _scan_folder(self, path: str, slug_parts: List[str], out: List[GalleryEntry]) -> None:
        listing = self.storage.list(path)
        if slug_parts:
            gallery = self._build_gallery(path, slug_parts, listing)
            if gallery is not None:
                out.append(gallery)

        subfolders = sorted((f for f in listing if f.is_directory), key=lambda f: natural_key(f.name))
        for folder in subfolders:
            self._scan_folder(folder.path, slug_parts + [folder.name], out)

    def _read_gallery_yaml(self, path: str) -> Tuple[GalleryMetadata, bool]:
        yaml_path = join_path(path, GALLERY_FILE)
        try:
            text = read_metadata(self.storage, yaml_path)
            if text is None:
                return GalleryMetadata(), False
            return parse_gallery_yaml(text, yaml_path), True
        except InvalidMetadataError as e:
            self.logger.warning(f"{e}; using defaults")
            return GalleryMetadata(), True

    def _read_photos_yaml(self, path: str) -> List[PhotoMetadata]:
        yaml_path = join_path(path, PHOTOS_FILE)
        try:
            text = read_metadata(self.storage, yaml_path)
            if text is None:
                return []
            return parse_photos_yaml(text, yaml_path)
        except InvalidMetadataError as e:
            self.logger.warning(f"{e}; using discovered files only")
            return []

    def _build_gallery(
        self,
        path: str,
        slug_parts: List[str],
        listing: List[FileInfo]
    ) -> Optional[GalleryEntry]:
        image_files = [
            f for f in listing
            if not f.is_directory
            and not f.name.startswith('.')
            and is_gallery_image(f.name)
            and not is_variant(f.name)
        ]
        has_config = any(f.name == GALLERY_FILE and not f.is_directory for f in listing)
        if not image_files and not has_config:
            return None

        meta, has_custom = self._read_gallery_yaml(path) if has_config else (GalleryMetadata(), False)
        has_photos_yaml = any(f.name == PHOTOS_FILE and not f.is_directory for f in listing)
        declared = self._read_photos_yaml(path) if has_photos_yaml else []

        photos = merge_photos(path, declared, [f.name for f in image_files])
        mtimes = [f.last_modified for f in image_files if f.last_modified]
        last_modified = max(mtimes) if mtimes else None

        if meta.tags is not None:
            tags = [normalize_tag(t) for t in meta.tags]
        else:
            tags = sorted({normalize_tag(t) for p in photos for t in p.tags})

        cover = None
        if meta.cover:
            cover = meta.cover if '/' in meta.cover else join_path(path, meta.cover)

        slug = '/'.join(slug_parts)
        gallery = GalleryEntry(
            slug=slug,
            title=meta.title or folder_name_to_title(slug_parts[-1]),
            path=path,
            description=meta.description,
            cover=cover,
            photos=photos,
            order=meta.order,
            tags=tags,
            password=meta.password,
            include_nested_photos=meta.include_nested_photos,
            is_parent_gallery=has_config and not image_files,
            category=meta.category or (slug_parts[0] if len(slug_parts) > 1 else None),
            private=meta.private,
            date=meta.date or last_modified,
            last_modified=last_modified,
            has_custom_metadata=has_custom or has_photos_yaml,
        )
        gallery.refresh()
        self.logger.debug(f"Gallery {slug}: {len(photos)} photos")
        return gallery
