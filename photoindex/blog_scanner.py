"""
BlogScanner - Builds PostEntry objects from blog/.

Posts are either single Markdown files (blog/my-post.md) or folders holding
a main Markdown file plus images (blog/my-post/index.md).
"""

import logging
from typing import List, Optional

from .entries import PostEntry
from .errors import InvalidMetadataError
from .metadata import as_str, as_tags, parse_front_matter, read_document
from .storage import FileInfo, Storage, join_path
from .utils import (
    calculate_reading_time,
    folder_name_to_title,
    generate_excerpt,
    get_basename,
    is_markdown_file,
    normalize_tag,
    to_slug,
)
from .variants import is_image_file, is_variant


BLOG_PATH = 'blog'

MAIN_FILE_PRIORITY = ('index.md', 'post.md', 'readme.md')


def find_main_markdown(files: List[FileInfo]) -> Optional[FileInfo]:
    """Pick index.md, then post.md, then readme.md, then the first .md file."""
    by_name = {f.name.lower(): f for f in files}
    for name in MAIN_FILE_PRIORITY:
        if name in by_name:
            return by_name[name]
    return files[0] if files else None


def sort_posts(posts: List[PostEntry]) -> None:
    """Sort posts in place, newest first (undated posts last)."""
    posts.sort(key=lambda p: p.date or '', reverse=True)


class BlogScanner:
    """Scans blog/ for Markdown posts."""

    def __init__(self, storage: Storage, logger: Optional[logging.Logger] = None):
        self.storage = storage
        self.logger = logger or logging.getLogger(__name__)

    def scan(self) -> List[PostEntry]:
        posts = []
        for item in self.storage.list(BLOG_PATH):
            if item.is_directory:
                post = self._scan_folder(item)
            elif is_markdown_file(item.name):
                post = self._scan_file(item)
            else:
                continue
            if post is not None:
                posts.append(post)

        sort_posts(posts)
        self.logger.info(f"Scanned {len(posts)} blog posts")
        return posts

    def _scan_folder(self, folder: FileInfo) -> Optional[PostEntry]:
        contents = self.storage.list(folder.path)
        md_files = [f for f in contents if not f.is_directory and is_markdown_file(f.name)]
        main_file = find_main_markdown(md_files)
        if main_file is None:
            return None

        images = [
            join_path(folder.path, f.name) for f in contents
            if not f.is_directory and is_image_file(f.name) and not is_variant(f.name)
        ]
        text = read_document(self.storage, main_file.path, self.logger)
        if not text:
            return None
        return self.parse_post(text, folder.path, folder.name, images)

    def _scan_file(self, item: FileInfo) -> Optional[PostEntry]:
        text = read_document(self.storage, item.path, self.logger)
        if not text:
            return None
        return self.parse_post(text, item.path, get_basename(item.name), [])

    def parse_post(self, text: str, path: str, default_slug: str, images: List[str]) -> PostEntry:
        """
        Build a post from Markdown text.

        Malformed front matter is logged and the whole file is used as body.
        """
        try:
            meta, body = parse_front_matter(text, path)
        except InvalidMetadataError as e:
            self.logger.warning(f"{e}; treating file as plain Markdown")
            meta, body = {}, text

        title = as_str(meta.get('title'))
        slug = to_slug(title) if title else to_slug(default_slug)
        description = as_str(meta.get('description'))
        try:
            tags = as_tags(meta.get('tags'), path) or []
        except InvalidMetadataError as e:
            self.logger.warning(f"{e}; ignoring tags")
            tags = []

        return PostEntry(
            slug=slug,
            title=title or folder_name_to_title(default_slug),
            path=path,
            date=as_str(meta.get('date')),
            description=description or None,
            excerpt=description or generate_excerpt(body),
            tags=[normalize_tag(t) for t in tags],
            draft=bool(meta.get('draft', False)),
            cover=as_str(meta.get('cover')) or (images[0] if images else None),
            author=as_str(meta.get('author')),
            reading_time=calculate_reading_time(body),
            images=images,
        )
