#!/usr/bin/env python3
"""
Command-line interface for the back-office core.

Usage:
    python cli.py [command] [options]

Commands:
    demo        Run a realtime scenario against the fixture data
    serve       Start the API server
    test        Run the test suite

Examples:
    python cli.py demo website-order
    python cli.py demo reconnect
    python cli.py serve --reload
"""

import argparse
import logging
import subprocess
import sys

from backoffice.config import Settings
from backoffice.models import Operation


def _website_order(customer_name: str, total: float) -> dict:
    return {
        "customer_id": "cust-001",
        "customer_name": customer_name,
        "total": total,
        "status": "new",
        "source": "website",
    }


def _print_bell(session) -> None:
    store = session.notifications
    print(f"Unread: {store.unread_count}")
    for n in store.notifications:
        marker = " " if n.read else "*"
        print(f"  {marker} {n.title} {n.message}")


def run_website_order_demo(settings: Settings) -> None:
    """A website order lands: bell, dashboard and orders table all follow."""
    from views.session import open_backend, open_session

    with open_session(open_backend(settings), settings) as session:
        print(f"Open channels: {session.subscriber.get_open_channels()}")
        print(f"Orders before: {session.dashboard.stats.orders}")

        session.table_store.insert("orders", _website_order("Aziz", 150000))

        _print_bell(session)
        print(f"Orders after: {session.dashboard.stats.orders}")
        print(f"Orders table rows: {len(session.orders.orders)}")


def run_reconnect_demo(settings: Settings) -> None:
    """The connection drops and resumes with a duplicate delivery."""
    from views.session import open_backend, open_session

    with open_session(open_backend(settings), settings) as session:
        feed = session.table_store.change_feed

        session.table_store.insert("orders", _website_order("Aziz", 150000))
        feed.disconnect()
        session.table_store.insert("orders", _website_order("Dilnoza", 98000))
        feed.resume(redeliver=True)

        _print_bell(session)


def run_demo(scenario: str, settings: Settings) -> None:
    """Run a demo scenario."""
    if scenario == "website-order":
        run_website_order_demo(settings)
    elif scenario == "reconnect":
        run_reconnect_demo(settings)
    elif scenario == "all":
        run_website_order_demo(settings)
        run_reconnect_demo(settings)
    else:
        print(f"Unknown scenario: {scenario}")
        sys.exit(1)


def run_watch(table: str, event: str, row_filter: str, settings: Settings) -> None:
    """Print change events for one table while the demo writes to it."""
    from realtime.subscriber import ChangeFeedSubscriber
    from views.session import open_backend

    store = open_backend(settings)
    subscriber = ChangeFeedSubscriber(store.change_feed)

    with subscriber.subscribe("cli_watch", table, event, row_filter or None, callback=print):
        store.insert("orders", _website_order("Aziz", 150000))
        store.update("orders", "ord-001", {"status": "completed"})
        store.delete("orders", "ord-002")


def run_tests(args: list[str]) -> None:
    """Run the test suite."""
    cmd = [sys.executable, "-m", "pytest"] + args
    subprocess.run(cmd)


def run_server(host: str, port: int, reload: bool) -> None:
    """Start the API server."""
    cmd = [sys.executable, "-m", "uvicorn", "api.main:app", f"--host={host}", f"--port={port}"]
    if reload:
        cmd.append("--reload")

    print(f"Starting server at http://{host}:{port}")
    print(f"API docs available at http://{host}:{port}/docs")
    subprocess.run(cmd)


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Back-office realtime core CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s demo website-order
  %(prog)s demo all
  %(prog)s watch orders --event INSERT --filter source=eq.website
  %(prog)s test -v
  %(prog)s serve --reload
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Demo command
    demo_parser = subparsers.add_parser("demo", help="Run demo scenarios")
    demo_parser.add_argument(
        "scenario",
        choices=["website-order", "reconnect", "all"],
        help="Which scenario to run",
    )

    # Watch command
    watch_parser = subparsers.add_parser("watch", help="Print change events for a table")
    watch_parser.add_argument("table", help="Table to watch")
    watch_parser.add_argument(
        "--event",
        default=Operation.ALL.value,
        choices=[op.value for op in Operation],
        help="Operation to watch",
    )
    watch_parser.add_argument("--filter", default="", help="Row filter, e.g. source=eq.website")

    # Test command
    test_parser = subparsers.add_parser("test", help="Run the test suite")
    test_parser.add_argument(
        "pytest_args",
        nargs="*",
        default=[],
        help="Arguments to pass to pytest",
    )

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    serve_parser.add_argument("--reload", action="store_true", help="Enable auto-reload")

    args = parser.parse_args()

    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s | %(name)-24s | %(levelname)-5s | %(message)s",
        datefmt="%H:%M:%S",
    )

    if args.command == "demo":
        run_demo(args.scenario, settings)
    elif args.command == "watch":
        run_watch(args.table, args.event, args.filter, settings)
    elif args.command == "test":
        run_tests(args.pytest_args)
    elif args.command == "serve":
        run_server(args.host, args.port, args.reload)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
