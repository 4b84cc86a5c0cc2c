"""
Entries stored in the content index: photos, galleries, posts, pages, tags.
"""

from dataclasses import dataclass, field, asdict
from typing import List, Optional

from .storage import join_path


@dataclass
class PhotoEntry:
    """
    A single photo inside a gallery.

    Attributes:
        filename: Original filename, unique within its gallery
        path: Full content path of the original
        order: Sort position (lower first)
        hidden: Hidden from the public gallery view
        tags: Photo tags
        title: Optional display title
        description: Optional caption
    """
    filename: str
    path: str
    order: int = 0
    hidden: bool = False
    tags: List[str] = field(default_factory=list)
    title: Optional[str] = None
    description: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> 'PhotoEntry':
        return cls(
            filename=data['filename'],
            path=data['path'],
            order=data.get('order', 0),
            hidden=bool(data.get('hidden', False)),
            tags=list(data.get('tags') or []),
            title=data.get('title'),
            description=data.get('description'),
        )

    @classmethod
    def from_path(cls, path: str, order: int = 0) -> 'PhotoEntry':
        """Default entry for a newly discovered or uploaded file."""
        return cls(filename=path.rstrip('/').rsplit('/', 1)[-1], path=path, order=order)


@dataclass
class GalleryEntry:
    """
    A gallery folder and its photos.

    The slug is the "/"-separated folder path below galleries/. Parent and
    child relations come from GalleryTree, not from stored references.
    """
    slug: str
    title: str
    path: str
    description: Optional[str] = None
    cover: Optional[str] = None
    photos: List[PhotoEntry] = field(default_factory=list)
    order: Optional[int] = None
    tags: List[str] = field(default_factory=list)
    password: Optional[str] = None
    include_nested_photos: bool = True
    is_parent_gallery: bool = False
    category: Optional[str] = None
    private: bool = False
    date: Optional[str] = None
    last_modified: Optional[str] = None
    has_custom_metadata: bool = False
    photo_count: int = 0

    @property
    def is_protected(self) -> bool:
        return bool(self.password)

    @property
    def visible_photos(self) -> List[PhotoEntry]:
        return [p for p in self.photos if not p.hidden]

    def get_photo(self, filename: str) -> Optional[PhotoEntry]:
        for photo in self.photos:
            if photo.filename == filename:
                return photo
        return None

    def refresh(self) -> None:
        """Recompute derived fields after the photo list changes."""
        self.photo_count = len(self.visible_photos)
        filenames = {p.filename for p in self.photos}
        if self.cover:
            cover_dir, _, cover_name = self.cover.rpartition('/')
            # covers from other folders (e.g. a child gallery) are kept as-is
            if cover_dir == self.path and cover_name not in filenames:
                self.cover = None
        if not self.cover:
            candidates = self.visible_photos or self.photos
            if candidates:
                self.cover = join_path(self.path, candidates[0].filename)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> 'GalleryEntry':
        return cls(
            slug=data['slug'],
            title=data['title'],
            path=data['path'],
            description=data.get('description'),
            cover=data.get('cover'),
            photos=[PhotoEntry.from_dict(p) for p in data.get('photos', [])],
            order=data.get('order'),
            tags=list(data.get('tags') or []),
            password=data.get('password'),
            include_nested_photos=data.get('include_nested_photos', True),
            is_parent_gallery=data.get('is_parent_gallery', False),
            category=data.get('category'),
            private=data.get('private', False),
            date=data.get('date'),
            last_modified=data.get('last_modified'),
            has_custom_metadata=data.get('has_custom_metadata', False),
            photo_count=data.get('photo_count', 0),
        )


@dataclass
class PostEntry:
    """A blog post, without its body."""
    slug: str
    title: str
    path: str
    date: Optional[str] = None
    description: Optional[str] = None
    excerpt: str = ''
    tags: List[str] = field(default_factory=list)
    draft: bool = False
    cover: Optional[str] = None
    author: Optional[str] = None
    reading_time: int = 0
    images: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> 'PostEntry':
        return cls(**data)


@dataclass
class PageEntry:
    """A static page (About, Contact, ...)."""
    slug: str
    title: str
    path: str
    description: Optional[str] = None
    hidden: bool = False
    order: Optional[int] = None
    is_html: bool = False
    layout: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> 'PageEntry':
        return cls(**data)


@dataclass
class TagEntry:
    """Tag with usage counts across galleries, photos and posts."""
    name: str
    label: str
    photo_count: int = 0
    gallery_count: int = 0
    post_count: int = 0

    @property
    def total(self) -> int:
        return self.photo_count + self.gallery_count + self.post_count

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> 'TagEntry':
        return cls(**data)
