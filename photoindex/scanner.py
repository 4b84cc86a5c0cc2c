"""
ContentScanner - Runs the gallery, blog and page scanners over one storage.
"""

import logging
import time
from typing import Optional

from .blog_scanner import BlogScanner
from .content_index import ContentIndex
from .gallery_scanner import GalleryScanner
from .page_scanner import PageScanner
from .storage import Storage


class ContentScanner:
    """
    Scans the whole content tree into a ContentIndex.

    Malformed metadata is logged and skipped by the individual scanners;
    storage errors propagate to the caller.
    """

    def __init__(self, storage: Storage, logger: Optional[logging.Logger] = None):
        self.storage = storage
        self.logger = logger or logging.getLogger(__name__)
        self.galleries = GalleryScanner(storage, logger=self.logger)
        self.blog = BlogScanner(storage, logger=self.logger)
        self.pages = PageScanner(storage, logger=self.logger)

    def scan(self) -> ContentIndex:
        """
        Scan galleries, posts and pages.

        Returns:
            A freshly stamped ContentIndex (not persisted)
        """
        start_time = time.time()
        index = ContentIndex(
            galleries=self.galleries.scan(),
            posts=self.blog.scan(),
            pages=self.pages.scan(),
        )
        index.restamp()

        stats = index.stats
        self.logger.info(
            f"Scan complete: {stats.total_galleries} galleries, "
            f"{stats.total_photos} photos, {stats.total_posts} posts, "
            f"{stats.total_pages} pages ({time.time() - start_time:.1f}s)"
        )
        return index
