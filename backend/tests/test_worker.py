"""Tests for the reconciliation sweep command."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from leave_ledger import worker
from leave_ledger.services.reconcile import SweepResult

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


def test_parser_defaults() -> None:
    assert worker.build_parser().parse_args([]).repair is False
    assert worker.build_parser().parse_args(["--repair"]).repair is True


async def test_run_reconciliation_uses_session_factory(
    session_factory: async_sessionmaker[AsyncSession],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(worker, "get_session_factory", lambda: session_factory)

    result = await worker.run_reconciliation(repair=True)
    assert result == SweepResult()


@pytest.mark.parametrize(("errors", "exit_code"), [(0, 0), (2, 1)])
def test_main_exit_code(monkeypatch: pytest.MonkeyPatch, errors: int, exit_code: int) -> None:
    seen: dict[str, bool] = {}

    async def _fake_run(*, repair: bool = False) -> SweepResult:
        seen["repair"] = repair
        return SweepResult(processed=3, errors=errors)

    monkeypatch.setattr(worker, "run_reconciliation", _fake_run)
    assert worker.main(["--repair"]) == exit_code
    assert seen["repair"] is True
