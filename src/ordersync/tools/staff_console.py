"""Live order board for a terminal at the counter.

Runs a realtime sync client against the configured order store and rings on
every new order. ``--once`` prints the current board and exits.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from collections.abc import Sequence
from typing import TextIO

from ordersync.api.dependencies import build_backend
from ordersync.application.notifications.notifiers import (
    BannerNotifier,
    InAppBanner,
    SoundNotifier,
    SystemPopupNotifier,
    VibrationNotifier,
)
from ordersync.application.notifications.pipeline import NotificationPipeline
from ordersync.application.sync.order_view import OrderView
from ordersync.application.sync.realtime_client import RealtimeSyncClient
from ordersync.domain.common.ids import BranchId
from ordersync.infrastructure.devices.console import (
    LoggingSystemNotifications,
    NoVibrator,
    TerminalAudioPlayer,
)
from ordersync.infrastructure.observability.logging_config import configure_logging

logger = logging.getLogger(__name__)


def render_board(view: OrderView, pipeline: NotificationPipeline | None, limit: int) -> str:
    lines = [f"{'#':<20} {'status':<17} {'customer':<24} {'total':>12}"]
    for order in view.orders(limit):
        marker = "*" if pipeline is not None and pipeline.is_highlighted(order.order_id) else " "
        total = f"{order.total_amount.to_decimal()} {order.total_amount.currency}"
        lines.append(
            f"{marker}{order.order_number:<19} {order.status.value:<17} "
            f"{order.customer_name[:24]:<24} {total:>12}"
        )
    return "\n".join(lines)


def build_pipeline(out: TextIO) -> NotificationPipeline:
    return NotificationPipeline(
        notifiers=[
            SoundNotifier(TerminalAudioPlayer(out)),
            VibrationNotifier(NoVibrator()),
            SystemPopupNotifier(LoggingSystemNotifications()),
            BannerNotifier(InAppBanner()),
        ]
    )


async def run(args: argparse.Namespace, out: TextIO) -> int:
    backend = build_backend()
    pipeline = build_pipeline(out)
    client = RealtimeSyncClient(
        change_feed=backend.change_feed,
        order_store=backend.order_store,
        branch_id=BranchId(args.branch_id),
        pipeline=pipeline,
        snapshot_limit=args.limit,
        backoff_seconds=args.backoff_seconds,
    )

    def redraw(view: OrderView) -> None:
        out.write("\n" + render_board(view, pipeline, args.limit) + "\n")
        out.flush()

    client.add_listener(redraw)
    async with client:
        if args.once:
            await client.wait_connected(timeout=args.connect_timeout)
            return 0
        try:
            await asyncio.Event().wait()
        finally:
            pipeline.close()
    return 0


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Live order board for one branch.")
    parser.add_argument("--branch-id", required=True, help="Branch whose orders to follow.")
    parser.add_argument(
        "--limit",
        type=int,
        default=int(os.getenv("REALTIME_SNAPSHOT_LIMIT", "50")),
        help="Orders to fetch on (re)connect and to show.",
    )
    parser.add_argument(
        "--backoff-seconds",
        type=float,
        default=float(os.getenv("REALTIME_BACKOFF_SECONDS", "3")),
        help="Wait between reconnect attempts.",
    )
    parser.add_argument(
        "--connect-timeout",
        type=float,
        default=10.0,
        help="With --once, give up if not connected within this many seconds.",
    )
    parser.add_argument("--once", action="store_true", help="Print the board once and exit.")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    configure_logging()
    args = _parse_args(argv)
    try:
        return asyncio.run(run(args, sys.stdout))
    except KeyboardInterrupt:
        return 0
    except asyncio.TimeoutError:
        print("could not connect to the order feed", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
