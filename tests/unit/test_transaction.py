"""Tests for the reversible step runner."""

import pytest

from aiwg.core.transaction import Step, Transaction
from aiwg.lib.typed_errors import ErrorCode, TransactionError
from aiwg.models.actions import Action, ActionType


def _action(detail: str) -> Action:
    return Action(type=ActionType.COPY_FILE, detail=detail)


class TestTransaction:
    def test_runs_in_order_and_marks_executed(self):
        log = []
        steps = [
            Step(_action("one"), lambda: log.append("one")),
            Step(_action("two"), lambda: log.append("two")),
        ]
        transaction = Transaction(steps)
        transaction.run()
        assert log == ["one", "two"]
        assert all(a.executed for a in transaction.actions)

    def test_failure_undoes_in_reverse(self):
        log = []

        def boom():
            raise OSError("disk full")

        steps = [
            Step(_action("one"), lambda: log.append("do-one"), undo=lambda: log.append("undo-one")),
            Step(_action("two"), lambda: log.append("do-two"), undo=lambda: log.append("undo-two")),
            Step(_action("three"), boom, undo=lambda: log.append("undo-three")),
        ]
        transaction = Transaction(steps)
        with pytest.raises(TransactionError) as exc_info:
            transaction.run()

        assert log == ["do-one", "do-two", "undo-two", "undo-one"]
        assert isinstance(exc_info.value.cause, OSError)
        assert exc_info.value.code == ErrorCode.STEP_FAILED
        assert [a.executed for a in transaction.actions] == [True, True, False]

    def test_finalizers_only_after_success(self):
        log = []

        def boom():
            raise RuntimeError("nope")

        transaction = Transaction([
            Step(_action("one"), lambda: None, finalize=lambda: log.append("final")),
            Step(_action("two"), boom),
        ])
        with pytest.raises(TransactionError):
            transaction.run()
        assert log == []

        transaction = Transaction([Step(_action("one"), lambda: None, finalize=lambda: log.append("final"))])
        transaction.run()
        assert log == ["final"]

    def test_failed_undo_is_recorded(self):
        def bad_undo():
            raise OSError("cannot undo")

        def boom():
            raise OSError("fail")

        transaction = Transaction([
            Step(_action("one"), lambda: None, undo=bad_undo),
            Step(_action("two"), boom),
        ])
        with pytest.raises(TransactionError):
            transaction.run()
        assert len(transaction.undo_failures) == 1
        assert "cannot undo" in transaction.undo_failures[0]

    def test_finalizer_oserror_is_not_fatal(self):
        def bad_finalize():
            raise OSError("busy")

        transaction = Transaction([Step(_action("one"), lambda: None, finalize=bad_finalize)])
        transaction.run()
        assert transaction.actions[0].executed
