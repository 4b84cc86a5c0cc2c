"""
GalleryTree - explicit parent/child structure over gallery slugs.

Nodes live in a flat list and refer to each other by index. Ancestors that
have no gallery of their own (plain folders) become virtual nodes, so every
slug "a/b" has an ancestor node "a".
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional

from .entries import GalleryEntry, PhotoEntry


@dataclass
class GalleryNode:
    slug: str
    gallery: Optional[GalleryEntry] = None
    parent: Optional[int] = None
    children: List[int] = field(default_factory=list)

    @property
    def is_virtual(self) -> bool:
        return self.gallery is None

    @property
    def name(self) -> str:
        return self.slug.rsplit('/', 1)[-1]


class GalleryTree:
    """Arena of GalleryNode objects with O(1) slug, parent and child lookup."""

    def __init__(self):
        self.nodes: List[GalleryNode] = []
        self._by_slug: Dict[str, int] = {}

    @classmethod
    def from_galleries(cls, galleries: Iterable[GalleryEntry]) -> 'GalleryTree':
        tree = cls()
        for gallery in galleries:
            tree.add(gallery)
        return tree

    def add(self, gallery: GalleryEntry) -> int:
        """Insert a gallery, creating virtual ancestors as needed."""
        idx = self._ensure(gallery.slug)
        self.nodes[idx].gallery = gallery
        return idx

    def _ensure(self, slug: str) -> int:
        slug = slug.strip('/')
        if slug in self._by_slug:
            return self._by_slug[slug]

        parent_idx = None
        if '/' in slug:
            parent_idx = self._ensure(slug.rsplit('/', 1)[0])

        idx = len(self.nodes)
        self.nodes.append(GalleryNode(slug=slug, parent=parent_idx))
        self._by_slug[slug] = idx
        if parent_idx is not None:
            self.nodes[parent_idx].children.append(idx)
        return idx

    def __contains__(self, slug: str) -> bool:
        return slug.strip('/') in self._by_slug

    def __len__(self) -> int:
        return len(self.nodes)

    def node(self, slug: str) -> GalleryNode:
        try:
            return self.nodes[self._by_slug[slug.strip('/')]]
        except KeyError:
            raise KeyError(f"Unknown gallery slug: {slug}") from None

    def get(self, slug: str) -> Optional[GalleryEntry]:
        idx = self._by_slug.get(slug.strip('/'))
        return self.nodes[idx].gallery if idx is not None else None

    def is_virtual(self, slug: str) -> bool:
        return self.node(slug).is_virtual

    def parent(self, slug: str) -> Optional[GalleryNode]:
        node = self.node(slug)
        return self.nodes[node.parent] if node.parent is not None else None

    def children(self, slug: str) -> List[GalleryNode]:
        return [self.nodes[i] for i in self.node(slug).children]

    def ancestors(self, slug: str) -> List[GalleryNode]:
        """Ancestors from the direct parent up to the root."""
        result = []
        node = self.node(slug)
        while node.parent is not None:
            node = self.nodes[node.parent]
            result.append(node)
        return result

    def descendants(self, slug: str) -> Iterator[GalleryNode]:
        """Depth-first descendants, children in insertion order."""
        stack = list(reversed(self.node(slug).children))
        while stack:
            node = self.nodes[stack.pop()]
            yield node
            stack.extend(reversed(node.children))

    def roots(self) -> List[GalleryNode]:
        return [n for n in self.nodes if n.parent is None]

    def nested_photos(self, slug: str) -> List[PhotoEntry]:
        """
        Photos shown for a gallery: its own, plus every descendant's when
        include_nested_photos is set (virtual nodes always include nested).
        """
        node = self.node(slug)
        photos = list(node.gallery.photos) if node.gallery else []
        if node.gallery is not None and not node.gallery.include_nested_photos:
            return photos
        for child in self.descendants(slug):
            if child.gallery is not None:
                photos.extend(child.gallery.photos)
        return photos
