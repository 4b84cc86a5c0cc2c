"""
PageScanner - Builds PageEntry objects from pages/.
"""

import logging
import re
from typing import List, Optional

from .entries import PageEntry
from .errors import InvalidMetadataError
from .metadata import (
    PAGE_FILE,
    as_int,
    as_str,
    parse_front_matter,
    parse_page_yaml,
    read_document,
    read_metadata,
)
from .storage import FileInfo, Storage, join_path
from .utils import folder_name_to_title, is_html_file, is_markdown_file, to_slug


PAGES_PATH = 'pages'

# More markdown sub-folders than this means the folder is a blog, not a page
MAX_MARKDOWN_SUBFOLDERS = 2


def find_main_file(contents: List[FileInfo]) -> Optional[FileInfo]:
    """Pick index.html, then index.md, then the first HTML file, then the first Markdown file."""
    files = [f for f in contents if not f.is_directory]
    html_files = [f for f in files if is_html_file(f.name)]
    md_files = [f for f in files if is_markdown_file(f.name)]

    for f in html_files:
        if f.name.lower() == 'index.html':
            return f
    for f in md_files:
        if f.name.lower() == 'index.md':
            return f
    if html_files:
        return html_files[0]
    if md_files:
        return md_files[0]
    return None


def sort_pages(pages: List[PageEntry]) -> None:
    """Sort pages in place by order (unordered pages last), then title."""
    pages.sort(key=lambda p: (p.order if p.order is not None else float('inf'), p.title))


class PageScanner:
    """Scans pages/ for static Markdown and HTML pages."""

    def __init__(self, storage: Storage, logger: Optional[logging.Logger] = None):
        self.storage = storage
        self.logger = logger or logging.getLogger(__name__)

    def scan(self) -> List[PageEntry]:
        pages = []
        for item in self.storage.list(PAGES_PATH):
            if item.is_directory:
                page = self._scan_folder(item)
            elif is_markdown_file(item.name) or is_html_file(item.name):
                page = self._scan_file(item)
            else:
                continue
            if page is not None:
                pages.append(page)

        sort_pages(pages)
        self.logger.info(f"Scanned {len(pages)} pages")
        return pages

    def _is_blog_folder(self, folder: FileInfo, contents: List[FileInfo]) -> bool:
        if any(f.name == PAGE_FILE for f in contents):
            yaml_path = join_path(folder.path, PAGE_FILE)
            try:
                text = read_metadata(self.storage, yaml_path)
                if text and parse_page_yaml(text, yaml_path).get('type') == 'blog':
                    return True
            except InvalidMetadataError as e:
                self.logger.warning(f"{e}; treating folder as a page")

        markdown_subfolders = 0
        for sub in contents:
            if sub.is_directory and any(is_markdown_file(f.name) for f in self.storage.list(sub.path)):
                markdown_subfolders += 1
        return markdown_subfolders > MAX_MARKDOWN_SUBFOLDERS

    def _scan_folder(self, folder: FileInfo) -> Optional[PageEntry]:
        contents = self.storage.list(folder.path)
        if self._is_blog_folder(folder, contents):
            self.logger.debug(f"Skipping blog-style folder {folder.path}")
            return None

        main_file = find_main_file(contents)
        if main_file is None:
            return None
        text = read_document(self.storage, main_file.path, self.logger)
        if not text:
            return None
        return self.parse_page(text, folder.path, folder.name, is_html_file(main_file.name))

    def _scan_file(self, item: FileInfo) -> Optional[PageEntry]:
        text = read_document(self.storage, item.path, self.logger)
        if not text:
            return None
        name = re.sub(r'\.(md|mdx|html?)$', '', item.name, flags=re.IGNORECASE)
        return self.parse_page(text, item.path, name, is_html_file(item.name))

    def parse_page(self, text: str, path: str, default_slug: str, is_html: bool) -> PageEntry:
        meta = {}
        if text.startswith('---'):
            try:
                meta, _ = parse_front_matter(text, path)
            except InvalidMetadataError as e:
                self.logger.warning(f"{e}; using defaults")

        title = as_str(meta.get('title'))
        try:
            order = as_int(meta.get('order'), path, 'order')
        except InvalidMetadataError as e:
            self.logger.warning(f"{e}; ignoring order")
            order = None

        return PageEntry(
            slug=to_slug(as_str(meta.get('slug')) or default_slug),
            title=title or folder_name_to_title(default_slug),
            path=path,
            description=as_str(meta.get('description')),
            hidden=bool(meta.get('hidden', False)),
            order=order,
            is_html=is_html,
            layout=as_str(meta.get('layout')),
        )
