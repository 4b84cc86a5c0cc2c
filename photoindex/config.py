"""
Configuration for storage backends and the variant optimizer.

Values are read from the environment and can be overridden from the CLI.
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'y', 't')


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == '':
        return default
    return int(value)


def parse_widths(value: str) -> List[int]:
    """
    Parse a comma separated width ladder such as "800,1600,2400".

    Returns:
        Sorted list of unique positive widths
    """
    widths = set()
    for part in value.split(','):
        part = part.strip()
        if not part:
            continue
        width = int(part)
        if width <= 0:
            raise ValueError(f"Width must be positive: {width}")
        widths.add(width)
    return sorted(widths)


@dataclass
class S3Config:
    """
    S3 / R2 / MinIO connection settings.

    Attributes:
        endpoint: S3 endpoint URL (None for AWS default)
        bucket: Bucket holding the content tree
        prefix: Key prefix under which the content root lives
        access_key: Access key id
        secret_key: Secret access key
        region: Region name
        verify_ssl: Verify TLS certificates
    """
    endpoint: Optional[str] = None
    bucket: Optional[str] = None
    prefix: str = ''
    access_key: Optional[str] = None
    secret_key: Optional[str] = None
    region: Optional[str] = None
    verify_ssl: bool = True

    @classmethod
    def from_env(cls) -> 'S3Config':
        """Build configuration from S3_* environment variables."""
        return cls(
            endpoint=os.getenv('S3_ENDPOINT'),
            bucket=os.getenv('S3_BUCKET'),
            prefix=os.getenv('S3_PREFIX', ''),
            access_key=os.getenv('S3_ACCESS_KEY'),
            secret_key=os.getenv('S3_SECRET_KEY'),
            region=os.getenv('S3_REGION'),
            verify_ssl=_env_bool('S3_VERIFY_SSL', True),
        )

    def validate(self) -> List[str]:
        """Return a list of configuration errors (empty if valid)."""
        errors = []
        if not self.bucket:
            errors.append("S3_BUCKET is required")
        if not self.access_key:
            errors.append("S3_ACCESS_KEY is required")
        if not self.secret_key:
            errors.append("S3_SECRET_KEY is required")
        return errors


@dataclass
class LocalConfig:
    """
    Local filesystem content root.

    Attributes:
        root_path: Directory holding the content tree
        prefix: Optional sub-directory under root_path
    """
    root_path: Optional[str] = None
    prefix: str = ''

    @classmethod
    def from_env(cls) -> 'LocalConfig':
        return cls(
            root_path=os.getenv('CONTENT_ROOT'),
            prefix=os.getenv('CONTENT_PREFIX', ''),
        )

    @property
    def base_path(self) -> str:
        if self.prefix:
            return os.path.join(self.root_path, self.prefix)
        return self.root_path

    def validate(self) -> List[str]:
        errors = []
        if not self.root_path:
            errors.append("Local root path is required")
        elif not os.path.isdir(self.root_path):
            errors.append(f"Local root path does not exist: {self.root_path}")
        return errors


@dataclass
class OptimizerConfig:
    """
    Settings for WebP variant generation.

    Attributes:
        widths: Current width ladder, ascending
        retired_widths: Widths used by earlier ladders, removed by cleanup
        quality: WebP quality (0-100)
        workers: Images processed concurrently inside one chunk
        batch_limit: Default number of images per chunk
        sample_size: Candidates sampled for a cold status estimate
    """
    widths: List[int] = field(default_factory=lambda: [800, 1600, 2400])
    retired_widths: List[int] = field(default_factory=lambda: [400, 1200])
    quality: int = 80
    workers: int = 3
    batch_limit: int = 5
    sample_size: int = 3

    def __post_init__(self):
        self.widths = sorted(set(self.widths))
        self.retired_widths = sorted(set(self.retired_widths) - set(self.widths))

    @classmethod
    def from_env(cls) -> 'OptimizerConfig':
        """Build configuration from environment variables."""
        defaults = cls()
        widths = os.getenv('VARIANT_WIDTHS')
        retired = os.getenv('RETIRED_VARIANT_WIDTHS')
        return cls(
            widths=parse_widths(widths) if widths else defaults.widths,
            retired_widths=parse_widths(retired) if retired is not None else defaults.retired_widths,
            quality=_env_int('WEBP_QUALITY', defaults.quality),
            workers=_env_int('OPTIMIZE_WORKERS', defaults.workers),
            batch_limit=_env_int('OPTIMIZE_BATCH_LIMIT', defaults.batch_limit),
            sample_size=_env_int('STATUS_SAMPLE_SIZE', defaults.sample_size),
        )

    @property
    def first_width(self) -> int:
        """Width whose variant marks an original as already optimized."""
        return self.widths[0]

    @property
    def all_widths(self) -> List[int]:
        """Current and retired widths, ascending."""
        return sorted(set(self.widths) | set(self.retired_widths))

    def validate(self) -> List[str]:
        errors = []
        if not self.widths:
            errors.append("At least one variant width is required")
        if not 0 <= self.quality <= 100:
            errors.append(f"WebP quality must be between 0 and 100: {self.quality}")
        if self.workers < 1:
            errors.append(f"Worker count must be at least 1: {self.workers}")
        if self.batch_limit < 1:
            errors.append(f"Batch limit must be at least 1: {self.batch_limit}")
        if self.sample_size < 0:
            errors.append(f"Sample size cannot be negative: {self.sample_size}")
        return errors
