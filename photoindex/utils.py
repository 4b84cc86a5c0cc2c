"""
Helpers shared by the scanners: slugs, titles, sorting and excerpts.
"""

import re
import unicodedata
from typing import List


def folder_name_to_title(name: str) -> str:
    """
    Convert a folder or file name into a display title.

    "tokyo-2024" -> "Tokyo 2024", "street_photography" -> "Street Photography"
    """
    spaced = re.sub(r'[-_]+', ' ', name).strip()
    return re.sub(r'\b\w', lambda m: m.group(0).upper(), spaced)


def to_slug(text: str) -> str:
    """Convert text into a URL-friendly slug ("Tokyo 2024!" -> "tokyo-2024")."""
    normalized = unicodedata.normalize('NFD', text.lower())
    ascii_only = ''.join(c for c in normalized if not unicodedata.combining(c))
    return re.sub(r'[^a-z0-9]+', '-', ascii_only).strip('-')


def get_basename(filename: str) -> str:
    """Filename without its last extension."""
    dot = filename.rfind('.')
    return filename[:dot] if dot > 0 else filename


def get_extension(filename: str) -> str:
    """Lowercased extension without the dot ('' if none)."""
    dot = filename.rfind('.')
    return filename[dot + 1:].lower() if dot > 0 else ''


def natural_key(value: str) -> List:
    """Sort key that orders embedded numbers numerically (img2 < img10)."""
    return [int(part) if part.isdigit() else part.lower()
            for part in re.split(r'(\d+)', value)]


def is_markdown_file(filename: str) -> bool:
    return get_extension(filename) in ('md', 'mdx')


def is_html_file(filename: str) -> bool:
    return get_extension(filename) in ('html', 'htm')


def normalize_tag(tag: str) -> str:
    return re.sub(r'\s+', '-', str(tag).strip().lower())


def format_tag_label(tag: str) -> str:
    return re.sub(r'\b\w', lambda m: m.group(0).upper(), tag.replace('-', ' '))


def calculate_reading_time(text: str, words_per_minute: int = 200) -> int:
    """Reading time in whole minutes, rounded up."""
    words = len(text.split())
    return -(-words // words_per_minute)


def generate_excerpt(content: str, max_length: int = 160) -> str:
    """Strip common Markdown syntax and truncate at a word boundary."""
    text = re.sub(r'^---[\s\S]*?---', '', content).strip()
    text = re.sub(r'```[\s\S]*?```', '', text)
    text = re.sub(r'!\[[^\]]*\]\([^)]+\)', '', text)
    text = re.sub(r'#{1,6}\s+', '', text)
    text = re.sub(r'\*\*([^*]+)\*\*', r'\1', text)
    text = re.sub(r'\*([^*]+)\*', r'\1', text)
    text = re.sub(r'\[([^\]]+)\]\([^)]+\)', r'\1', text)
    text = re.sub(r'`([^`]+)`', r'\1', text)
    text = re.sub(r'\s*\n+\s*', ' ', text).strip()

    if len(text) <= max_length:
        return text

    truncated = text[:max_length]
    last_space = truncated.rfind(' ')
    if last_space > 0:
        truncated = truncated[:last_space]
    return truncated + '…'
