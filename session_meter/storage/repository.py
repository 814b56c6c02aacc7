"""
Repository pattern for log access.

Reads append-only JSONL log shards from every project directory and returns
the flat list of normalized events.
"""

import json
import logging
from pathlib import Path
from typing import Iterator, List, Optional

from .models import Event
from .normalizer import normalize_record
from .paths import find_data_paths

logger = logging.getLogger(__name__)


class LogRepository:
    """Repository over a directory of per-project log shards.

    Layout: ``<data_path>/<project>/<session>.jsonl``. The project directory
    name becomes each event's project label.
    """

    def __init__(self, data_path: Path):
        """Initialize the repository.

        Args:
            data_path: Directory containing one subdirectory per project
        """
        self.data_path = Path(data_path)

    def project_dirs(self) -> List[Path]:
        """Project directories, sorted by name."""
        try:
            return sorted(d for d in self.data_path.iterdir() if d.is_dir())
        except OSError as e:
            logger.warning("Could not list %s: %s", self.data_path, e)
            return []

    def get_events(self) -> List[Event]:
        """Collect events from every shard of every project.

        Events keep their arrival order: projects by name, shards by name,
        lines in file order.
        """
        events: List[Event] = []
        shard_count = 0
        for project_dir in self.project_dirs():
            for shard in sorted(project_dir.glob("*.jsonl")):
                shard_count += 1
                events.extend(read_shard(shard, project_label=project_dir.name))

        logger.debug("Collected %d events from %d shards under %s", len(events), shard_count, self.data_path)
        return events


def read_shard(path: Path, project_label: Optional[str] = None) -> List[Event]:
    """Read one JSONL shard, skipping malformed lines."""
    events = []
    for record in _iter_records(path):
        event = normalize_record(record, project_label=project_label)
        if event is not None:
            events.append(event)
    return events


def _iter_records(path: Path) -> Iterator[object]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            for line_number, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    yield json.loads(line)
                except json.JSONDecodeError as e:
                    logger.warning("Skipping malformed line %d in %s: %s", line_number, path, e)
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Could not read %s: %s", path, e)


def get_repository(data_dir: Optional[Path] = None) -> Optional[LogRepository]:
    """Get a repository for ``data_dir`` or the first discovered data path.

    Returns:
        A LogRepository, or None if no data directory exists
    """
    if data_dir is not None:
        return LogRepository(data_dir) if Path(data_dir).is_dir() else None

    paths = find_data_paths()
    if not paths:
        return None
    return LogRepository(paths[0])
