#!/usr/bin/env python3

# ruff: noqa: T201

from __future__ import annotations

import argparse
import logging
import sys
from datetime import UTC, datetime
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from proofledger.app import (
    check_wallet_proofs,
    receive_token,
    send_token,
    spending_history,
    wallet_health,
    wallet_summary,
)
from proofledger.config import configure_logging
from proofledger.domain.errors import WalletError
from proofledger.domain.history import HistoryQuery
from proofledger.domain.inspect import format_balance
from proofledger.domain.model import Direction

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Manage a bearer-token credit wallet")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("balance", help="Show the balance and held denominations")

    check = subparsers.add_parser("check", help="Check held proofs with the issuer")
    check.add_argument(
        "--prune",
        action="store_true",
        help="Remove proofs the issuer reports as spent or pending",
    )

    health = subparsers.add_parser("health", help="Score issuer reachability and held proofs")
    health.add_argument(
        "--details", action="store_true", help="List the status of every held proof"
    )
    health.add_argument(
        "--skip-proofs",
        action="store_true",
        help="Only check that the issuer answers; leave proof states unknown",
    )

    send = subparsers.add_parser("send", help="Create a token for an amount")
    send.add_argument("amount", type=int, help="Amount in wallet units")

    receive = subparsers.add_parser("receive", help="Add a token's proofs to the wallet")
    receive.add_argument("token", type=str, help="Encoded token (cashuA...)")

    history = subparsers.add_parser("history", help="Show spending history")
    history.add_argument(
        "--limit",
        type=int,
        default=HistoryQuery().limit,
        help="Maximum number of records to show (default: %(default)s)",
    )
    history.add_argument(
        "--direction",
        choices=[direction.value for direction in Direction],
        help="Only show inbound or outbound records",
    )
    history.add_argument(
        "--since",
        type=str,
        help="ISO-8601 timestamp (UTC) marking the inclusive start of the window",
    )
    history.add_argument(
        "--until",
        type=str,
        help="ISO-8601 timestamp (UTC) marking the inclusive end of the window",
    )

    return parser.parse_args(list(argv))


def _parse_iso_datetime(value: str) -> datetime:
    try:
        normalized = value.strip()
        if normalized.endswith("Z"):
            normalized = normalized[:-1] + "+00:00"
        dt = datetime.fromisoformat(normalized)
    except ValueError as exc:
        raise ValueError(f"Invalid ISO timestamp: {value}") from exc
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def _build_history_query(args: argparse.Namespace) -> HistoryQuery:
    since = _parse_iso_datetime(args.since) if args.since else None
    until = _parse_iso_datetime(args.until) if args.until else None
    if since and until and since > until:
        raise ValueError("History window start must be before end")
    if args.limit is not None and args.limit < 0:
        raise ValueError("Limit must be non-negative")
    return HistoryQuery(
        direction=Direction(args.direction) if args.direction else None,
        since=since,
        until=until,
        limit=args.limit,
    )


def _show_balance() -> None:
    summary = wallet_summary()
    print(f"Balance: {format_balance(summary.total_balance)} in {summary.total_proofs} proofs")
    for amount, count in summary.by_amount.items():
        print(f"  {amount:>8} x {count}")


def _check(*, prune: bool) -> None:
    report = check_wallet_proofs(prune=prune)
    print(f"Valid proofs: {len(report.result.valid)}")
    print(f"Spent or pending proofs: {len(report.result.spent)} ({report.spent_amount})")
    if prune:
        print(f"Pruned: {report.pruned}; balance now {report.balance}")


def _health(*, details: bool, skip_proofs: bool) -> None:
    report = wallet_health(include_details=details, skip_proof_check=skip_proofs)
    verdict = "healthy" if report.healthy else "unhealthy"
    print(f"Health score: {report.score}/100 ({verdict})")
    issuer = report.issuer
    if issuer.reachable and issuer.latency_ms is not None:
        print(f"Issuer: {issuer.url} reachable in {issuer.latency_ms:.0f}ms")
    else:
        print(f"Issuer: {issuer.url} unreachable")
    stats = report.proofs
    print(
        f"Proofs: {stats.total} total, {stats.valid} valid, {stats.spent} spent, "
        f"{stats.pending} pending, {stats.unknown} unknown"
    )
    print(f"Valid balance: {format_balance(stats.valid_balance)}")
    print(f"At-risk balance: {format_balance(stats.at_risk_balance)}")
    for issue in report.issues:
        print(f"  - {issue}")
    for item in report.details or ():
        print(f"  {item.proof.amount:>8} {item.status}")


def _history(query: HistoryQuery) -> None:
    page = spending_history(query)
    for record in page.records:
        print(f"{record.timestamp.isoformat()}  {record.signed_amount:+d} {record.unit}")
    if page.has_more:
        print(f"... {page.total - len(page.records)} more")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        query = _build_history_query(parsed_args) if parsed_args.command == "history" else None
    except ValueError:
        configure_logging()
        log.exception("CLI validation error")
        sys.exit(2)

    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)

    try:
        if parsed_args.command == "balance":
            _show_balance()
        elif parsed_args.command == "check":
            _check(prune=parsed_args.prune)
        elif parsed_args.command == "health":
            _health(details=parsed_args.details, skip_proofs=parsed_args.skip_proofs)
        elif parsed_args.command == "send":
            print(send_token(parsed_args.amount))
        elif parsed_args.command == "receive":
            amount = receive_token(parsed_args.token)
            print(f"Received {amount}")
        elif parsed_args.command == "history" and query is not None:
            _history(query)
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301
    except WalletError as exc:
        log.error("%s", exc.user_message)  # noqa: TRY400
        if exc.suggestion:
            log.info("Suggestion: %s", exc.suggestion)
        sys.exit(1)
    except Exception:
        log.exception("Fatal error")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
