from __future__ import annotations

from datetime import UTC, datetime

import pytest

from proofledger import main as main_module
from proofledger.app import CheckReport
from proofledger.domain.errors import CreationDiagnostics, ErrorCode, InsufficientBalanceError
from proofledger.domain.health import (
    IssuerStatus,
    ProofHealth,
    ProofHealthStatus,
    ProofStats,
    WalletHealth,
)
from proofledger.domain.history import HistoryPage, HistoryQuery
from proofledger.domain.inspect import summarize_proofs
from proofledger.domain.model import CheckStateResult, Direction, SpendingRecord
from tests.support.proofs import make_proofs


def test_balance_prints_summary(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setattr(
        main_module, "wallet_summary", lambda: summarize_proofs(make_proofs(1000, 234, 1))
    )

    main_module.main(["balance"])

    out = capsys.readouterr().out
    assert "Balance: 1,235 in 3 proofs" in out


def test_send_prints_encoded_token(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    captured: list[int] = []

    def fake_send(amount: int) -> str:
        captured.append(amount)
        return "cashuAtoken"

    monkeypatch.setattr(main_module, "send_token", fake_send)

    main_module.main(["send", "21"])

    assert captured == [21]
    assert capsys.readouterr().out.strip() == "cashuAtoken"


def test_receive_prints_amount(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setattr(main_module, "receive_token", lambda token: 8)

    main_module.main(["receive", "cashuAtoken"])

    assert "Received 8" in capsys.readouterr().out


def test_check_passes_prune_flag(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, object] = {}
    spent = tuple(make_proofs(4))

    def fake_check(*, prune: bool) -> CheckReport:
        captured["prune"] = prune
        return CheckReport(result=CheckStateResult(valid=(), spent=spent), pruned=1, balance=0)

    monkeypatch.setattr(main_module, "check_wallet_proofs", fake_check)

    main_module.main(["check", "--prune"])

    assert captured["prune"] is True


def test_history_builds_query_from_flags(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    captured: list[HistoryQuery] = []
    record = SpendingRecord(
        direction=Direction.OUT,
        amount=5,
        unit="usd",
        timestamp=datetime(2025, 1, 1, 12, tzinfo=UTC),
    )

    def fake_history(query: HistoryQuery) -> HistoryPage:
        captured.append(query)
        return HistoryPage(records=(record,), total=3, has_more=True)

    monkeypatch.setattr(main_module, "spending_history", fake_history)

    main_module.main(
        [
            "history",
            "--limit",
            "1",
            "--direction",
            "out",
            "--since",
            "2025-01-01T03:00:00+03:00",
            "--until",
            "2025-01-02T00:00:00Z",
        ]
    )

    (query,) = captured
    assert query.limit == 1
    assert query.direction is Direction.OUT
    assert query.since == datetime(2025, 1, 1, 0, 0, tzinfo=UTC)
    assert query.until == datetime(2025, 1, 2, 0, 0, tzinfo=UTC)
    out = capsys.readouterr().out
    assert "-5 usd" in out
    assert "... 2 more" in out


@pytest.mark.parametrize(
    "argv",
    [
        pytest.param(["history", "--since", "not-a-date"], id="bad-timestamp"),
        pytest.param(
            ["history", "--since", "2025-01-02T00:00:00Z", "--until", "2025-01-01T00:00:00Z"],
            id="inverted-window",
        ),
        pytest.param(["history", "--limit", "-1"], id="negative-limit"),
    ],
)
def test_history_validation_errors_exit_2(argv: list[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main_module.main(argv)

    assert excinfo.value.code == 2


def test_wallet_error_exits_1(
    monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    def fake_send(amount: int) -> str:
        diagnostics = CreationDiagnostics.build(
            ErrorCode.INSUFFICIENT_BALANCE, requested_amount=amount, proofs=make_proofs(1, 2)
        )
        raise InsufficientBalanceError("short", diagnostics=diagnostics)

    monkeypatch.setattr(main_module, "send_token", fake_send)

    with pytest.raises(SystemExit) as excinfo:
        main_module.main(["send", "10"])

    assert excinfo.value.code == 1
    assert "Need 7 more credits (have 3, need 10)" in caplog.text


def test_unexpected_error_exits_1(monkeypatch: pytest.MonkeyPatch) -> None:
    def broken() -> None:
        raise RuntimeError("boom")

    monkeypatch.setattr(main_module, "wallet_summary", broken)

    with pytest.raises(SystemExit) as excinfo:
        main_module.main(["balance"])

    assert excinfo.value.code == 1


def test_health_prints_score_issues_and_details(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    captured: dict[str, bool] = {}
    proof = make_proofs(4)[0]

    def fake_health(*, include_details: bool, skip_proof_check: bool) -> WalletHealth:
        captured.update(details=include_details, skip=skip_proof_check)
        return WalletHealth(
            checked_at=datetime(2025, 1, 1, tzinfo=UTC),
            issuer=IssuerStatus(url="https://issuer.example", reachable=True, latency_ms=12.0),
            score=95,
            issues=("1 unspendable proof(s) found",),
            proofs=ProofStats(total=1, spent=1, at_risk_balance=4),
            details=(ProofHealth(proof, ProofHealthStatus.SPENT),),
        )

    monkeypatch.setattr(main_module, "wallet_health", fake_health)

    main_module.main(["health", "--details"])

    out = capsys.readouterr().out
    assert captured == {"details": True, "skip": False}
    assert "Health score: 95/100 (healthy)" in out
    assert "reachable in 12ms" in out
    assert "  - 1 unspendable proof(s) found" in out
    assert "       4 spent" in out
