"""
ContentIndex - the cached snapshot of every gallery, post and page.
"""

import json
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Dict, List, Optional

from .entries import GalleryEntry, PageEntry, PostEntry, TagEntry
from .gallery_tree import GalleryTree
from .tags import build_tag_index


INDEX_VERSION = 2


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class IndexStats:
    """
    Aggregate counts for a content index.

    Attributes:
        total_galleries: Number of galleries (including parent galleries)
        total_photos: Number of visible photos across all galleries
        total_posts: Number of posts, drafts included
        total_pages: Number of pages
        total_tags: Number of distinct tags
    """
    total_galleries: int = 0
    total_photos: int = 0
    total_posts: int = 0
    total_pages: int = 0
    total_tags: int = 0

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> 'IndexStats':
        return cls(**data)


@dataclass
class ContentIndex:
    """
    Versioned snapshot of the content tree.

    Replaced wholesale by a rebuild, patched in place by partial updates.

    Attributes:
        version: Document format version (INDEX_VERSION)
        generated_at: ISO timestamp of the last build or patch
        galleries: Gallery entries, in scan order
        posts: Blog post entries
        pages: Static page entries
        tags: Tag index
        stats: Aggregate counts
    """
    version: int = INDEX_VERSION
    generated_at: str = field(default_factory=utc_now_iso)
    galleries: List[GalleryEntry] = field(default_factory=list)
    posts: List[PostEntry] = field(default_factory=list)
    pages: List[PageEntry] = field(default_factory=list)
    tags: List[TagEntry] = field(default_factory=list)
    stats: IndexStats = field(default_factory=IndexStats)

    def find_gallery(self, gallery_path: str) -> Optional[GalleryEntry]:
        """Find a gallery by its storage path (or slug)."""
        wanted = gallery_path.strip('/')
        for gallery in self.galleries:
            if gallery.path == wanted:
                return gallery
        for gallery in self.galleries:
            if gallery.slug == wanted:
                return gallery
        return None

    def tree(self) -> GalleryTree:
        return GalleryTree.from_galleries(self.galleries)

    def restamp(self) -> None:
        """Recompute tags, stats and the timestamp after a change."""
        self.tags = build_tag_index(self.galleries, self.posts)
        self.stats = IndexStats(
            total_galleries=len(self.galleries),
            total_photos=sum(g.photo_count for g in self.galleries),
            total_posts=len(self.posts),
            total_pages=len(self.pages),
            total_tags=len(self.tags),
        )
        self.generated_at = utc_now_iso()

    @property
    def age_seconds(self) -> float:
        generated = datetime.fromisoformat(self.generated_at)
        if generated.tzinfo is None:
            generated = generated.replace(tzinfo=timezone.utc)
        return (datetime.now(timezone.utc) - generated).total_seconds()

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            'version': self.version,
            'generated_at': self.generated_at,
            'galleries': [g.to_dict() for g in self.galleries],
            'posts': [p.to_dict() for p in self.posts],
            'pages': [p.to_dict() for p in self.pages],
            'tags': [t.to_dict() for t in self.tags],
            'stats': self.stats.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'ContentIndex':
        """Create from dictionary."""
        return cls(
            version=data['version'],
            generated_at=data['generated_at'],
            galleries=[GalleryEntry.from_dict(g) for g in data.get('galleries', [])],
            posts=[PostEntry.from_dict(p) for p in data.get('posts', [])],
            pages=[PageEntry.from_dict(p) for p in data.get('pages', [])],
            tags=[TagEntry.from_dict(t) for t in data.get('tags', [])],
            stats=IndexStats.from_dict(data.get('stats', {})),
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)

    @classmethod
    def from_json(cls, text: str) -> 'ContentIndex':
        return cls.from_dict(json.loads(text))

    def summary(self) -> Dict[str, int]:
        return self.stats.to_dict()
