"""Entry point for the live log hierarchy viewer."""

import argparse
import asyncio
import logging
import os
import signal
import sys
import threading

from logtree.config import Config
from logtree.dashboard import create_dashboard_app, run_dashboard
from logtree.hierarchy import Strategy
from logtree.viewer import LogViewer


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Live log hierarchy viewer")
    parser.add_argument("--config", default=os.environ.get("CONFIG_PATH", "config.yaml"))
    parser.add_argument("--url", default=None, help="SSE endpoint, e.g. http://localhost:2022/logs")
    parser.add_argument("--strategy", default=None, choices=[s.value for s in Strategy])
    parser.add_argument("--dashboard-port", type=int, default=None)
    parser.add_argument("--no-dashboard", action="store_true", default=False)
    parser.add_argument("--print", dest="print_tree", action="store_true", default=False,
                        help="print the tree to stdout after every rebuild")
    return parser.parse_args(argv)


def load_config(args) -> Config:
    config = Config(args.config)
    if args.url:
        config.set("stream", "url", args.url)
    if args.strategy:
        config.set("hierarchy", "strategy", args.strategy)
    if args.dashboard_port is not None:
        config.set("dashboard", "port", args.dashboard_port)
    if args.no_dashboard:
        config.set("dashboard", "enabled", False)
    return config


async def run(config: Config, print_tree: bool = False):
    log = logging.getLogger(__name__)
    viewer = LogViewer(config)

    if print_tree:
        def _print(_forest):
            print("\033[2J\033[H" + viewer.render(color=sys.stdout.isatty()), flush=True)
        viewer.scheduler.add_listener(_print)

    dashboard = config["dashboard"]
    if dashboard["enabled"]:
        app = create_dashboard_app(viewer)
        dash_thread = threading.Thread(
            target=run_dashboard, args=(app, dashboard["host"], dashboard["port"]), daemon=True,
        )
        dash_thread.start()
        log.info("Dashboard running on %s:%d", dashboard["host"], dashboard["port"])

    shutdown = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, shutdown.set)

    await viewer.start()
    try:
        await shutdown.wait()
        log.info("Shutdown requested")
    finally:
        await viewer.stop()


def main(argv=None):
    args = parse_args(argv)
    config = load_config(args)

    logging.basicConfig(
        level=getattr(logging, str(config["logging"]["level"]).upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        stream=sys.stderr,
    )

    asyncio.run(run(config, print_tree=args.print_tree))


if __name__ == "__main__":
    main()
