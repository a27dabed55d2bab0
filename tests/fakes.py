from __future__ import annotations

import time
from dataclasses import dataclass, field


@dataclass
class FakeNotifier:
    """
    Records every hook call. ``fail`` makes the hooks report failure,
    ``explode`` makes them raise. ``delay`` stalls each hook like a slow SMTP server.
    """

    fail: bool = False
    explode: bool = False
    delay: float = 0.0
    assignments: list[tuple[int, int, int]] = field(default_factory=list)
    status_changes: list[tuple[int, int, str]] = field(default_factory=list)

    def notify_assignment(self, task_id: int, assignee_id: int, acting_user_id: int) -> bool:
        self.assignments.append((task_id, assignee_id, acting_user_id))
        return self._outcome()

    def notify_status_change(self, task_id: int, assignee_id: int, new_status: str) -> bool:
        self.status_changes.append((task_id, assignee_id, new_status))
        return self._outcome()

    def _outcome(self) -> bool:
        if self.delay:
            time.sleep(self.delay)
        if self.explode:
            raise RuntimeError("smtp unreachable")
        return not self.fail
