"""
Baseline Store
==============
Persists the single accepted Baseline as a flat JSON document.

Reading yields a tagged BaselineRead (OK, ABSENT or CORRUPT); load()
collapses the last two to None so a missing or damaged file is simply
"no prior baseline". Saving replaces the document atomically.
"""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from loguru import logger

from perfgate.core.exceptions import BaselineStorageError, DataCorruptionError
from perfgate.core.models import Baseline


class BaselineStatus(str, Enum):
    OK = "ok"
    ABSENT = "absent"
    CORRUPT = "corrupt"


@dataclass(frozen=True)
class BaselineRead:
    status: BaselineStatus
    baseline: Optional[Baseline] = None
    error: Optional[DataCorruptionError] = None


class BaselineStore:
    def __init__(self, path: Union[str, Path] = ".performance-baseline.json"):
        self.path = Path(path)

    def read(self) -> BaselineRead:
        if not self.path.exists():
            return BaselineRead(BaselineStatus.ABSENT)

        try:
            raw = self.path.read_text(encoding="utf-8")
            baseline = Baseline.from_document(json.loads(raw))
        except (OSError, ValueError, KeyError, TypeError) as e:
            error = DataCorruptionError(str(self.path), reason=f"Unreadable baseline ({e.__class__.__name__}: {e})")
            return BaselineRead(BaselineStatus.CORRUPT, error=error)

        return BaselineRead(BaselineStatus.OK, baseline=baseline)

    def load(self) -> Optional[Baseline]:
        """Return the stored Baseline, or None when absent or corrupt."""
        result = self.read()
        if result.status is BaselineStatus.CORRUPT:
            logger.warning(f"Ignoring corrupt baseline: {result.error}")
        elif result.status is BaselineStatus.ABSENT:
            logger.debug(f"No baseline at {self.path}")
        return result.baseline

    def save(self, baseline: Baseline) -> None:
        """
        Overwrite the stored baseline.

        Raises:
            BaselineStorageError: If the document cannot be written.
        """
        payload = json.dumps(baseline.to_document(), indent=2)
        directory = self.path.parent
        tmp_name = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".baseline-", suffix=".tmp", dir=str(directory))
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, self.path)
            tmp_name = None
        except OSError as e:
            raise BaselineStorageError(str(self.path), str(e)) from e
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)

        logger.info(f"Baseline saved for {baseline.branch}@{baseline.revision} to {self.path}")
