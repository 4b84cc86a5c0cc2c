"""
Persisted progress record for an optimization run.
"""

import json
import logging
from dataclasses import dataclass, field, asdict
from typing import Optional

from .content_index import utc_now_iso
from .storage import Storage


PROGRESS_KEY = '.opt-progress.json'


@dataclass
class OptimizationProgress:
    """
    Progress of one optimization run.

    Attributes:
        run_id: Identifier issued when the run started (None for legacy records)
        processed: Candidates handled so far (0 <= processed <= total)
        total: Candidate count when the run started
        running: False once the last chunk has finished
        updated_at: ISO timestamp of the last write
    """
    run_id: Optional[str] = None
    processed: int = 0
    total: int = 0
    running: bool = False
    updated_at: str = field(default_factory=utc_now_iso)

    @property
    def is_complete(self) -> bool:
        return not self.running and self.processed >= self.total

    @property
    def percent(self) -> int:
        if self.total <= 0:
            return 100
        return round(self.processed * 100 / self.total)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> 'OptimizationProgress':
        total = max(0, int(data.get('total', 0)))
        processed = min(max(0, int(data.get('processed', 0))), total)
        return cls(
            run_id=data.get('run_id'),
            processed=processed,
            total=total,
            running=bool(data.get('running', False)),
            updated_at=data.get('updated_at') or utc_now_iso(),
        )

    @classmethod
    def parse(cls, text: str) -> 'OptimizationProgress':
        """
        Parse a stored record: JSON, or the compact "current/total" form.

        Raises:
            ValueError: if the text is in neither form
        """
        text = text.strip()
        if text.startswith('{'):
            return cls.from_dict(json.loads(text))

        current, sep, total = text.partition('/')
        if not sep:
            raise ValueError(f"Unrecognized progress record: {text!r}")
        current, total = int(current), int(total)
        return cls.from_dict({
            'processed': current,
            'total': total,
            'running': current < total,
        })


class ProgressStore:
    """Reads and writes the progress record in content storage."""

    def __init__(self, storage: Storage, key: str = PROGRESS_KEY, logger: Optional[logging.Logger] = None):
        self.storage = storage
        self.key = key
        self.logger = logger or logging.getLogger(__name__)

    def read(self) -> Optional[OptimizationProgress]:
        try:
            text = self.storage.get_text(self.key)
            if text is None:
                return None
            return OptimizationProgress.parse(text)
        except (TypeError, ValueError) as e:
            self.logger.warning(f"Ignoring unreadable progress record {self.key}: {e}")
            return None

    def write(self, progress: OptimizationProgress) -> None:
        progress.updated_at = utc_now_iso()
        self.storage.put(self.key, json.dumps(progress.to_dict()), content_type='application/json')
