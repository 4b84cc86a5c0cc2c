"""
ContentIndexCache - Persists the ContentIndex and patches it in place.

The cached document lives at a fixed key in the same storage as the content.
Partial updates are plain read-modify-write: two concurrent writers can lose
one of their updates, and the next full rebuild corrects it.
"""

import json
import logging
from typing import Callable, Iterable, List, Optional

from .blog_scanner import sort_posts
from .content_index import INDEX_VERSION, ContentIndex
from .entries import GalleryEntry, PageEntry, PhotoEntry, PostEntry
from .errors import GalleryNotFoundError, IndexBuildError
from .gallery_tree import GalleryTree
from .page_scanner import sort_pages
from .scanner import ContentScanner
from .storage import Storage, split_path
from .variants import is_gallery_image, is_variant


INDEX_KEY = '_content-index.json'

PhotoUpdate = Callable[[List[PhotoEntry]], List[PhotoEntry]]

# Fields update_gallery_metadata() may change
EDITABLE_FIELDS = frozenset({
    'title', 'description', 'cover', 'order', 'tags', 'password',
    'include_nested_photos', 'category', 'private', 'date',
})


class ContentIndexCache:
    """
    Read-through cache for the content index.

    Usage:
        cache = ContentIndexCache(storage)
        index = cache.get()
        cache.add_photos('galleries/tokyo', ['galleries/tokyo/new.jpg'])
    """

    def __init__(
        self,
        storage: Storage,
        scanner: Optional[ContentScanner] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.storage = storage
        self.logger = logger or logging.getLogger(__name__)
        self.scanner = scanner or ContentScanner(storage, logger=self.logger)

    def read(self) -> Optional[ContentIndex]:
        """
        Load the persisted index.

        Returns:
            The cached index, or None when missing, unparsable or of another version
        """
        try:
            text = self.storage.get_text(INDEX_KEY)
            if text is None:
                return None
            data = json.loads(text)
        except ValueError as e:
            # UnicodeDecodeError is a ValueError too
            self.logger.warning(f"Cached content index is unreadable ({e}); ignoring it")
            return None
        if not isinstance(data, dict) or data.get('version') != INDEX_VERSION:
            found = data.get('version') if isinstance(data, dict) else None
            self.logger.info(f"Cached content index version {found} != {INDEX_VERSION}; rebuilding")
            return None
        try:
            return ContentIndex.from_dict(data)
        except (KeyError, TypeError) as e:
            self.logger.warning(f"Cached content index is malformed ({e}); ignoring it")
            return None

    def write(self, index: ContentIndex) -> None:
        self.storage.put(INDEX_KEY, index.to_json(), content_type='application/json')

    def get(self, force_rebuild: bool = False) -> ContentIndex:
        """Return the cached index, building and persisting one on a miss."""
        if not force_rebuild:
            index = self.read()
            if index is not None:
                return index
        return self.build()

    def build(self) -> ContentIndex:
        """
        Rescan all content and persist a new index.

        Raises:
            IndexBuildError: if scanning or persisting fails (nothing is written
                unless the scan completed)
        """
        self.logger.info("Building content index...")
        try:
            index = self.scanner.scan()
        except Exception as e:
            self.logger.error(f"Content index build failed: {e}")
            raise IndexBuildError(f"Content index build failed: {e}") from e

        try:
            self.write(index)
        except Exception as e:
            self.logger.error(f"Failed to persist content index: {e}")
            raise IndexBuildError(f"Failed to persist content index: {e}") from e

        self.logger.info(f"Content index built: {index.summary()}")
        return index

    def invalidate(self) -> None:
        """Delete the cached index; the next get() rebuilds it."""
        self.storage.delete(INDEX_KEY)
        self.logger.info("Content index invalidated")

    def age_seconds(self) -> Optional[float]:
        index = self.read()
        return index.age_seconds if index is not None else None

    def tree(self) -> GalleryTree:
        return self.get().tree()

    def _patch(self, target: str, patch: Callable[[ContentIndex], bool]) -> Optional[ContentIndex]:
        """
        Apply patch(index) to the cached index and persist it if it changed.

        Returns:
            The (possibly unchanged) index, or None when nothing was cached
        """
        index = self.read()
        if index is None:
            self.logger.debug(f"No cached index; skipping patch of {target}")
            return None

        if patch(index):
            index.restamp()
            self.write(index)
        return index

    def _patch_gallery(
        self,
        gallery_path: str,
        patch: Callable[[ContentIndex, GalleryEntry], None]
    ) -> Optional[ContentIndex]:
        def apply(index: ContentIndex) -> bool:
            gallery = index.find_gallery(gallery_path)
            if gallery is None:
                raise GalleryNotFoundError(gallery_path)
            patch(index, gallery)
            return True

        return self._patch(gallery_path, apply)

    def update_gallery_photos(self, gallery_path: str, fn: PhotoUpdate) -> Optional[ContentIndex]:
        """
        Replace a gallery's photo list with fn(current photos).

        Returns:
            The patched index, or None when nothing was cached

        Raises:
            GalleryNotFoundError: if the gallery is not in the cached index
        """
        def patch(index: ContentIndex, gallery: GalleryEntry) -> None:
            gallery.photos = list(fn(list(gallery.photos)))
            gallery.refresh()

        index = self._patch_gallery(gallery_path, patch)
        if index is not None:
            self.logger.info(f"Updated photos of {gallery_path}")
        return index

    def add_photos(self, gallery_path: str, new_paths: Iterable[str]) -> Optional[ContentIndex]:
        """
        Append newly uploaded originals to a gallery.

        Variant files, non-images and filenames already present are ignored.
        """
        new_paths = list(new_paths)

        def append(photos: List[PhotoEntry]) -> List[PhotoEntry]:
            known = {p.filename for p in photos}
            next_order = max((p.order for p in photos), default=-1) + 1
            for path in new_paths:
                _, filename = split_path(path)
                if filename in known or is_variant(filename) or not is_gallery_image(filename):
                    continue
                photos.append(PhotoEntry.from_path(path.strip('/'), order=next_order))
                known.add(filename)
                next_order += 1
            return photos

        return self.update_gallery_photos(gallery_path, append)

    def update_gallery_metadata(self, gallery_path: str, **fields) -> Optional[ContentIndex]:
        """Patch editable gallery settings (title, description, cover, ...)."""
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update gallery fields: {sorted(unknown)}")

        def patch(index: ContentIndex, gallery: GalleryEntry) -> None:
            for name, value in fields.items():
                setattr(gallery, name, value)
            gallery.has_custom_metadata = True
            gallery.refresh()

        return self._patch_gallery(gallery_path, patch)

    def remove_gallery(self, gallery_path: str) -> Optional[ContentIndex]:
        """Drop a gallery entry (its sub-galleries are left untouched)."""
        def patch(index: ContentIndex, gallery: GalleryEntry) -> None:
            index.galleries.remove(gallery)

        index = self._patch_gallery(gallery_path, patch)
        if index is not None:
            self.logger.info(f"Removed gallery {gallery_path} from index")
        return index

    def update_post(self, post: PostEntry) -> Optional[ContentIndex]:
        """Insert or replace a post (matched by slug), keeping newest-first order."""
        def patch(index: ContentIndex) -> bool:
            index.posts = [p for p in index.posts if p.slug != post.slug]
            index.posts.append(post)
            sort_posts(index.posts)
            return True

        index = self._patch(f"post {post.slug}", patch)
        if index is not None:
            self.logger.info(f"Updated post {post.slug} in index")
        return index

    def remove_post(self, slug: str) -> Optional[ContentIndex]:
        """Drop a post by slug. An unknown slug leaves the index untouched."""
        def patch(index: ContentIndex) -> bool:
            remaining = [p for p in index.posts if p.slug != slug]
            changed = len(remaining) != len(index.posts)
            index.posts = remaining
            return changed

        return self._patch(f"post {slug}", patch)

    def update_page(self, page: PageEntry) -> Optional[ContentIndex]:
        """Insert or replace a page (matched by slug), keeping page order."""
        def patch(index: ContentIndex) -> bool:
            index.pages = [p for p in index.pages if p.slug != page.slug]
            index.pages.append(page)
            sort_pages(index.pages)
            return True

        index = self._patch(f"page {page.slug}", patch)
        if index is not None:
            self.logger.info(f"Updated page {page.slug} in index")
        return index

    def remove_page(self, slug: str) -> Optional[ContentIndex]:
        """Drop a page by slug. An unknown slug leaves the index untouched."""
        def patch(index: ContentIndex) -> bool:
            remaining = [p for p in index.pages if p.slug != slug]
            changed = len(remaining) != len(index.pages)
            index.pages = remaining
            return changed

        return self._patch(f"page {slug}", patch)
