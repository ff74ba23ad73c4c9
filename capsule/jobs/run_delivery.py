#!/usr/bin/env python3
"""
Time capsule delivery process.

Builds the note store and mail transport once, then either runs the
delivery scheduler until stopped, performs a single manual run, or prints
the delivery status.

Usage:
    python -m capsule.jobs.run_delivery            # run on DELIVERY_SCHEDULE
    python -m capsule.jobs.run_delivery --once     # one manual run
    python -m capsule.jobs.run_delivery --status   # print delivery status
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from typing import Optional

from capsule.config import AppConfig, config
from capsule.database.client import Stores, create_stores
from capsule.database.errors import StoreUnavailableError
from capsule.email.dispatcher import DeliveryDispatcher
from capsule.email.transport import create_transport
from capsule.jobs.delivery_scheduler import DeliveryScheduler
from capsule.utils.logging import LogLevel, get_log_buffer


def build_scheduler(stores: Stores, app_config: Optional[AppConfig] = None) -> DeliveryScheduler:
    """Wire the store, transport, dispatcher and scheduler from configuration."""
    app_config = app_config or config
    dispatcher = DeliveryDispatcher(
        stores.notes,
        create_transport(app_config),
        probe_timeout=app_config.EMAIL_PROBE_TIMEOUT_SECONDS,
        send_timeout=app_config.EMAIL_SEND_TIMEOUT_SECONDS,
    )
    return DeliveryScheduler(
        stores.notes,
        dispatcher,
        schedule=app_config.DELIVERY_SCHEDULE,
        pacing_seconds=app_config.DELIVERY_PACING_SECONDS,
        timezone_name=app_config.DELIVERY_TIMEZONE,
    )


def report_run_log(limit: int = 10) -> None:
    """Print buffered warnings and errors from the last run to stderr."""
    buffer = get_log_buffer()
    by_level = buffer.get_stats()["by_level"]
    problems = buffer.get_errors(limit=limit) + buffer.get_recent(limit=limit, level=LogLevel.WARNING)
    if not problems:
        return

    print(
        f"{by_level.get('error', 0)} error(s), {by_level.get('warning', 0)} warning(s) logged during the run:",
        file=sys.stderr
    )
    for entry in problems:
        print(
            f"  {entry['level'].upper()} [{entry['source']}] {entry['message']} {entry['metadata']}",
            file=sys.stderr
        )


async def run_forever(scheduler: DeliveryScheduler):
    """Run the scheduler until SIGINT/SIGTERM."""
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def shutdown_handler():
        print("\nShutting down delivery scheduler...")
        stop_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, shutdown_handler)

    scheduler.start()
    print("Delivery scheduler running. Press Ctrl+C to stop.")

    try:
        await stop_event.wait()
    finally:
        scheduler.shutdown()


async def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(description="Time capsule email delivery")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--once", action="store_true", help="Run one delivery check now and exit")
    mode.add_argument("--status", action="store_true", help="Print delivery status and exit")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    stores = create_stores(config)
    try:
        await stores.initialize()
        scheduler = build_scheduler(stores, config)

        if args.status:
            status = await scheduler.get_status()
            print(json.dumps(status, indent=2))
            return 0

        if args.once:
            summary = await scheduler.trigger_now()
            print(json.dumps(summary.to_dict(), indent=2))
            report_run_log()
            return 1 if summary.aborted else 0

        print("=" * 50)
        print("Time Capsule Delivery Scheduler")
        print(f"  Storage: {stores.backend}")
        print(f"  Schedule: {config.DELIVERY_SCHEDULE} ({config.DELIVERY_TIMEZONE})")
        print(f"  Email: {'configured' if scheduler.dispatcher.configured else 'not configured (deliveries skipped)'}")
        print("=" * 50)
        await run_forever(scheduler)
        return 0
    except StoreUnavailableError as e:
        print(f"ERROR: note store unavailable: {e}", file=sys.stderr)
        return 1
    finally:
        await stores.close()


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
