"""
Per-task record of file changes made by tools
"""

import difflib
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class _FileChange:
    original: Optional[str]
    current: Optional[str]


class TaskDiffTracker:
    """
    Tools call ``record`` with the content before and after each write.
    The first ``before`` seen for a path is kept so the summary covers the
    whole task, not just the last edit.
    """

    def __init__(self, task_id: str):
        self.task_id = task_id
        self._changes: Dict[str, _FileChange] = {}

    def record(self, path: str, before: Optional[str], after: Optional[str]) -> None:
        change = self._changes.get(path)
        if change is None:
            self._changes[path] = _FileChange(original=before, current=after)
        else:
            change.current = after
        logger.debug(f"[Task {self.task_id}] Recorded change: {path}")

    def build_task_diff(self) -> Optional[Dict[str, Any]]:
        files: List[Dict[str, Any]] = []
        for path, change in self._changes.items():
            if change.original == change.current:
                continue
            if change.original is None:
                status = "added"
            elif change.current is None:
                status = "deleted"
            else:
                status = "modified"

            diff_lines = list(difflib.unified_diff(
                (change.original or "").splitlines(keepends=True),
                (change.current or "").splitlines(keepends=True),
                fromfile=f"a/{path}",
                tofile=f"b/{path}",
            ))
            additions = sum(1 for line in diff_lines if line.startswith("+") and not line.startswith("+++"))
            deletions = sum(1 for line in diff_lines if line.startswith("-") and not line.startswith("---"))
            files.append({
                'path': path,
                'status': status,
                'additions': additions,
                'deletions': deletions,
                'diff': "".join(diff_lines),
            })

        if not files:
            return None
        return {
            'task_id': self.task_id,
            'files': files,
            'total_additions': sum(f['additions'] for f in files),
            'total_deletions': sum(f['deletions'] for f in files),
        }
