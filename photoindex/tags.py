"""
Tag index built from galleries, photos and posts.
"""

from typing import Dict, Iterable, List

from .entries import GalleryEntry, PostEntry, TagEntry
from .utils import format_tag_label, normalize_tag


def build_tag_index(galleries: Iterable[GalleryEntry], posts: Iterable[PostEntry]) -> List[TagEntry]:
    """
    Count tag usage across public galleries, visible photos and published posts.

    Returns:
        Tags sorted by total usage (descending), then by name
    """
    tags: Dict[str, TagEntry] = {}

    def counter(raw: str) -> TagEntry:
        name = normalize_tag(raw)
        if name not in tags:
            tags[name] = TagEntry(name=name, label=format_tag_label(name))
        return tags[name]

    for gallery in galleries:
        if gallery.private:
            continue
        for tag in gallery.tags:
            counter(tag).gallery_count += 1
        for photo in gallery.photos:
            if photo.hidden:
                continue
            for tag in photo.tags:
                counter(tag).photo_count += 1

    for post in posts:
        if post.draft:
            continue
        for tag in post.tags:
            counter(tag).post_count += 1

    return sorted(tags.values(), key=lambda t: (-t.total, t.name))
