"""
ledgerflow.cli.main
===================

`ledgerflow`: command-line front end for the transaction pipeline and the
coordinator flows.

Examples
--------
    $ ledgerflow version
    $ ledgerflow --network memory token-demo
    $ ledgerflow --network local create-accounts --count 3
    $ ledgerflow fund 0.0.1002 0.0.1003 --amount 500
    $ ledgerflow balance 0.0.1002

Configuration
-------------
Everything `LedgerFlowConfig.from_env` reads (LEDGERFLOW_NETWORK,
LEDGERFLOW_OPERATOR_ID / LEDGERFLOW_OPERATOR_KEY, ...) plus the global flags
below, which take precedence. On the `memory` network a funded operator is
minted per process, so the demos run without a node.
"""

from __future__ import annotations

import json
import sys
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator, List, Optional

import typer

from .. import accounts, allowance, schedule, tokens, topics
from ..config import LedgerFlowConfig
from ..context import NetworkContext
from ..errors import AllowanceExceeded, LedgerFlowError
from ..log import configure as configure_logging
from ..log import trace_scope
from ..tx import build
from ..types.core import TopicMessage
from ..version import __version__, version_info

app = typer.Typer(
    name="ledgerflow",
    help="Build, sign, submit and reconcile ledger transactions.",
    no_args_is_help=True,
    add_completion=False,
)

__all__ = ["app", "main"]


@dataclass
class State:
    config: LedgerFlowConfig
    _ctx: Optional[NetworkContext] = None

    def context(self) -> NetworkContext:
        if self._ctx is None:
            self._ctx = NetworkContext.from_config(self.config)
        return self._ctx

    def close(self) -> None:
        if self._ctx is not None:
            self._ctx.network.close()
            self._ctx = None


def _print_json(obj: Any) -> None:
    typer.echo(json.dumps(obj, indent=2, ensure_ascii=False))


@app.callback()
def _root(
    ctx: typer.Context,
    network: Optional[str] = typer.Option(
        None, "--network", "-n", help="testnet | previewnet | mainnet | local | memory"
    ),
    rpc: Optional[str] = typer.Option(None, "--rpc", help="Node HTTP JSON-RPC URL."),
    accounts_file: Optional[str] = typer.Option(
        None, "--accounts-file", help="Account registry file (default accounts.json)."
    ),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING, ..."),
    json_logs: Optional[bool] = typer.Option(
        None, "--json-logs/--text-logs", help="Force JSON or text log output."
    ),
) -> None:
    """Resolve configuration once per invocation and set up logging."""
    try:
        cfg = LedgerFlowConfig.with_overrides(
            None, network=network, rpc_url=rpc, accounts_file=accounts_file, log_level=log_level
        )
    except LedgerFlowError as e:
        raise typer.BadParameter(str(e)) from e
    if json_logs is None and cfg.log_format in ("json", "text"):
        json_logs = cfg.log_format == "json"
    configure_logging(level=cfg.log_level, json=json_logs)
    ctx.obj = State(config=cfg)


@contextmanager
def _session(ctx: typer.Context) -> Iterator[NetworkContext]:
    """Network context for one command; ledger errors exit with status 1."""
    state: State = ctx.obj
    with trace_scope():
        try:
            yield state.context()
        except LedgerFlowError as e:
            typer.echo(f"error: {e}", err=True)
            raise typer.Exit(code=1) from e
        finally:
            state.close()


# --- Commands -----------------------------------------------------------------


@app.command("version")
def version() -> None:
    """Print the ledgerflow version."""
    typer.echo(f"ledgerflow {version_info()}")


@app.command("env")
def env(ctx: typer.Context) -> None:
    """Show the effective configuration (operator key redacted)."""
    state: State = ctx.obj
    _print_json({**state.config.to_dict(), "version": __version__})


@app.command("create-accounts")
def create_accounts(
    ctx: typer.Context,
    count: int = typer.Option(1, "--count", "-c", min=1, help="Number of accounts to create."),
    initial_balance: int = typer.Option(
        accounts.DEFAULT_INITIAL_BALANCE, "--initial-balance", min=0, help="Initial native balance."
    ),
) -> None:
    """Create accounts paid by the operator and append them to the registry."""
    with _session(ctx) as nctx:
        created = accounts.create_accounts(nctx, count, initial_balance)
        _print_json([{"id": str(a.id), "publicKey": a.public_key.to_string_raw()} for a in created])


@app.command("fund")
def fund(
    ctx: typer.Context,
    targets: List[str] = typer.Argument(..., help="Account ids to fund."),
    amount: int = typer.Option(..., "--amount", "-a", min=1, help="Native amount per account."),
    sender: Optional[str] = typer.Option(None, "--from", help="Sender (default: operator)."),
) -> None:
    """Send the same native amount to each target, one transfer each."""
    with _session(ctx) as nctx:
        receipts = accounts.fund_accounts(nctx, targets, amount, sender=sender)
        _print_json([r.to_dict() for r in receipts])
        if any(not r.ok for r in receipts):
            raise typer.Exit(code=1)


@app.command("balance")
def balance(ctx: typer.Context, account: str = typer.Argument(..., help="Account id.")) -> None:
    """Query an account balance."""
    with _session(ctx) as nctx:
        _print_json(accounts.get_balance(account, nctx).to_dict())


@app.command("token-demo")
def token_demo(ctx: typer.Context) -> None:
    """
    Create a finite-supply token, distribute it, then show that a paused token
    rejects transfers until it is unpaused.
    """
    with _session(ctx) as nctx:
        treasury, bob, carol = accounts.create_accounts(nctx, 3, 20)
        tid = tokens.create_token(
            nctx,
            name="Demo Token",
            symbol="DMO",
            treasury=treasury.id,
            decimals=2,
            initial_supply=35_050,
            max_supply=50_000,
            supply_key=treasury.private_key,
            pause_key=treasury.private_key,
        )
        for holder in (bob, carol):
            tokens.associate(holder.id, [tid], nctx).raise_for_status()
            tokens.transfer_tokens(tid, treasury.id, holder.id, 2_525, nctx, decimals=2).raise_for_status()

        tokens.pause(tid, treasury.private_key, nctx).raise_for_status()
        paused = tokens.transfer_tokens(tid, bob.id, carol.id, 100, nctx, decimals=2)
        tokens.unpause(tid, treasury.private_key, nctx).raise_for_status()
        resumed = tokens.transfer_tokens(tid, bob.id, carol.id, 100, nctx, decimals=2)

        _print_json({
            "tokenId": str(tid),
            "whilePaused": paused.to_dict(),
            "afterUnpause": resumed.to_dict(),
            "balances": {
                str(a.id): accounts.get_balance(a.id, nctx).token(tid) for a in (treasury, bob, carol)
            },
        })


@app.command("allowance-demo")
def allowance_demo(
    ctx: typer.Context,
    limit: int = typer.Option(100, "--limit", min=1, help="Native allowance granted to the spender."),
) -> None:
    """Grant an allowance, spend within it, then overspend."""
    with _session(ctx) as nctx:
        owner, spender, recipient = accounts.create_accounts(nctx, 3, 1_000)
        allowance.approve_allowance(owner.id, spender.id, build.NATIVE, limit, nctx).raise_for_status()
        first = allowance.spend_allowance(spender.id, owner.id, recipient.id, build.NATIVE, limit - 1, nctx)
        try:
            allowance.spend_allowance(spender.id, owner.id, recipient.id, build.NATIVE, 2, nctx)
            overspend = "accepted"
        except AllowanceExceeded as e:
            overspend = e.status
        _print_json({
            "spend": first.to_dict(),
            "overspend": overspend,
            "balances": {str(a.id): accounts.get_balance(a.id, nctx).native for a in (owner, recipient)},
        })


@app.command("schedule-demo")
def schedule_demo(ctx: typer.Context) -> None:
    """Schedule a two-signer transfer and collect the signatures one by one."""
    with _session(ctx) as nctx:
        alice, bob, carol = accounts.create_accounts(nctx, 3, 100)
        child = schedule.bind_child(
            build.transfer([
                build.native(alice.id, -10),
                build.native(bob.id, -10),
                build.native(carol.id, 20),
            ]),
            nctx,
        )
        sched = schedule.create_schedule(child, nctx, memo="ledgerflow schedule demo")
        states = [sched.state.value]
        for signer in (alice, bob):
            schedule.add_signature(sched.schedule_id, signer.private_key, nctx).raise_for_status()
            states.append(schedule.get_schedule(sched.schedule_id, nctx).state.value)
        _print_json({
            "scheduleId": str(sched.schedule_id),
            "scheduledTransactionId": str(sched.scheduled_transaction_id),
            "states": states,
            "carol": accounts.get_balance(carol.id, nctx).native,
        })


@app.command("topic-demo")
def topic_demo(
    ctx: typer.Context,
    messages: List[str] = typer.Argument(None, help="Messages to submit (default: three samples)."),
    wait: float = typer.Option(5.0, "--wait", help="Seconds to wait for delivery."),
) -> None:
    """Create a topic, subscribe to it and echo what arrives."""
    payloads = messages or ["hello", "from", "ledgerflow"]
    received: List[TopicMessage] = []
    done = threading.Event()

    def on_message(msg: TopicMessage) -> None:
        received.append(msg)
        if len(received) >= len(payloads):
            done.set()

    with _session(ctx) as nctx:
        tid = topics.create_topic(nctx, memo="ledgerflow topic demo")
        with topics.subscribe(nctx, tid, on_message):
            for text in payloads:
                topics.submit_message(tid, text, nctx).raise_for_status()
            done.wait(wait)
        _print_json({
            "topicId": str(tid),
            "messages": [{"sequence": m.sequence_number, "text": m.text} for m in received],
        })


# --- Entrypoints --------------------------------------------------------------


def main(argv: Optional[List[str]] = None) -> int:
    """Run the CLI and return an exit code."""
    try:
        rv = app(prog_name="ledgerflow", standalone_mode=False, args=argv)
        # non-standalone click hands back the exit code of typer.Exit
        return rv if isinstance(rv, int) else 0
    except typer.Exit as e:
        return int(e.exit_code)
    except LedgerFlowError as e:
        typer.echo(f"error: {e}", err=True)
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
