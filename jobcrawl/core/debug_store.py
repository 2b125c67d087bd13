"""Directory-backed store for diagnostic artifacts (page HTML, screenshots)."""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)

LIST_FAILURE_KEY = "DEBUG-LIST-FAILURE"


class DebugStore:
    """Writes artifacts as ``<root>/<key><suffix>``. Later writes overwrite."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, key: str, suffix: str) -> Path:
        return self._root / f"{key}{suffix}"

    def save(self, key: str, data: str | bytes, suffix: str) -> Path:
        """Persist one artifact and return its path."""
        self._root.mkdir(parents=True, exist_ok=True)
        path = self.path_for(key, suffix)
        if isinstance(data, bytes):
            path.write_bytes(data)
        else:
            path.write_text(data, encoding="utf-8")
        logger.info("Saved debug artifact %s", path)
        return path
