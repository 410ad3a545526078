"""
Reversible step runner.

Install and uninstall are planned as a list of Steps, each pairing an
Action (the audit/dry-run record) with the callable that performs it and
the callable that undoes it. Transaction.run() applies steps in order;
when one raises, every step already applied is undone in reverse order
and a TransactionError carries the original failure.

Finalizers run only after every step succeeded. They hold work that must
not happen while an undo is still possible (purging a trash directory).
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from aiwg.lib.typed_errors import TransactionError
from aiwg.models.actions import Action

logger = logging.getLogger(__name__)


@dataclass
class Step:
    action: Action
    apply: Callable[[], None]
    undo: Optional[Callable[[], None]] = None
    finalize: Optional[Callable[[], None]] = None


class Transaction:
    def __init__(self, steps: list[Step]):
        self.steps = steps
        self.applied: list[Step] = []
        self.undo_failures: list[str] = []

    @property
    def actions(self) -> list[Action]:
        return [step.action for step in self.steps]

    def run(self) -> None:
        for step in self.steps:
            try:
                step.apply()
            except Exception as e:
                logger.warning(f"Step failed ({step.action.type.value}: {step.action.detail}): {e}")
                self.rollback()
                raise TransactionError(step.action.detail, e) from e
            step.action.executed = True
            self.applied.append(step)

        for step in self.steps:
            if step.finalize is None:
                continue
            try:
                step.finalize()
            except OSError as e:
                # The operation itself is committed; leftovers are only logged
                logger.warning(f"Cleanup after '{step.action.detail}' failed: {e}")

    def rollback(self) -> None:
        """Undo applied steps, newest first. Failed undos are logged and skipped."""
        while self.applied:
            step = self.applied.pop()
            if step.undo is None:
                continue
            try:
                step.undo()
                logger.debug(f"Undid: {step.action.detail}")
            except Exception as e:
                message = f"Failed to undo '{step.action.detail}': {e}"
                logger.warning(message)
                self.undo_failures.append(message)
