"""
TDD Relay entry point.

Usage:
    python -m tdd_relay [-c channel] [-l host] [-P port] [-u user] [-p secret] [-r]

Exit codes:
    0 - Operator quit or end of input
    1 - Configuration, connection or login failure, forced disconnect, interrupt
"""

import argparse
import asyncio
import dataclasses
import signal
import sys
from typing import List, Optional

from . import __version__
from .ami import AMIClient, AMIConnectionError, AMILoginError
from .config import RelayConfig, autodetect_ami_secret, get_config, setup_logging
from .core import RelayEngine, Terminal
from .metrics import get_metrics
from .websocket import TranscriptMirror

logger = setup_logging()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="tdd_relay",
        description="Virtual TDD/TTY for Asterisk",
        epilog="Environment variables prefixed TDD_RELAY_ provide the defaults.",
    )
    parser.add_argument(
        "-c", "--channel",
        help="Target channel with which to converse. If not provided, will prompt for selection.",
    )
    parser.add_argument("-l", "--host", help="Asterisk AMI hostname. Default is localhost (127.0.0.1)")
    parser.add_argument("-P", "--port", type=int, help="Asterisk AMI port. Default is 5038")
    parser.add_argument("-u", "--username", help="Asterisk AMI username")
    parser.add_argument(
        "-p", "--password",
        help="Asterisk AMI password. By default, autodetected for local connections if possible.",
    )
    parser.add_argument(
        "-r", "--always-refresh", action="store_true", default=None,
        help="Always refresh channel list during selection",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace, base: Optional[RelayConfig] = None) -> RelayConfig:
    """Overlay command line options on the environment configuration."""
    config = base or get_config()
    overrides = {
        "channel": args.channel,
        "ami_host": args.host,
        "ami_port": args.port,
        "ami_username": args.username,
        "ami_password": args.password,
        "always_refresh": args.always_refresh,
        "log_level": "DEBUG" if args.verbose else None,
    }
    return dataclasses.replace(config, **{k: v for k, v in overrides.items() if v is not None})


def resolve_password(config: RelayConfig) -> RelayConfig:
    """
    Fill in the AMI secret from manager.conf when possible.

    Raises:
        ValueError: If credentials are missing or cannot be detected
    """
    if not config.ami_username:
        raise ValueError("No username provided (use -u flag)")
    if config.ami_password or not config.is_local:
        return config

    secret = autodetect_ami_secret(config.ami_username, config.manager_conf_path)
    if secret is None:
        raise ValueError(
            f"No password specified, and failed to autodetect from {config.manager_conf_path}"
        )
    return dataclasses.replace(config, ami_password=secret)


async def run(config: RelayConfig) -> int:
    """Connect, log in and run the relay engine."""
    if config.metrics_port:
        metrics = get_metrics()
        metrics.port = config.metrics_port
        metrics.start()
    else:
        metrics = None

    client = AMIClient(
        host=config.ami_host,
        port=config.ami_port,
        event_queue_size=config.event_queue_maxsize,
        connect_timeout=config.connect_timeout,
        action_timeout=config.action_timeout,
    )
    try:
        await client.connect()
        await client.login(config.ami_username, config.ami_password)
    except AMILoginError:
        logger.error(f"Failed to log in with username {config.ami_username}")
        await client.close()
        return 1
    except AMIConnectionError as e:
        logger.error(str(e))
        await client.close()
        return 1

    mirror = None
    if config.ws_urls:
        mirror = TranscriptMirror(
            urls=config.ws_urls,
            queue_maxsize=config.ws_queue_maxsize,
            reconnect_interval=config.ws_reconnect_interval,
        )
        await mirror.start()

    # Handle shutdown signals
    shutdown_event = asyncio.Event()

    def signal_handler():
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    terminal = Terminal()
    engine = RelayEngine(client, terminal, config, metrics=metrics, mirror=mirror)
    exit_code = 1
    try:
        with terminal.attached():
            engine_task = asyncio.create_task(engine.run())
            closed_task = asyncio.create_task(client.wait_closed())
            shutdown_task = asyncio.create_task(shutdown_event.wait())

            done, _ = await asyncio.wait(
                {engine_task, closed_task, shutdown_task},
                return_when=asyncio.FIRST_COMPLETED,
            )

            if engine_task in done:
                try:
                    exit_code = engine_task.result()
                except AMIConnectionError as e:
                    logger.error(str(e))
            else:
                engine_task.cancel()
                await asyncio.gather(engine_task, return_exceptions=True)
                if closed_task in done:
                    # Start with a newline, the cursor may be anywhere
                    sys.stderr.write("\nAMI was forcibly disconnected...\n")
                else:
                    sys.stderr.write("\nTDD Relay exiting...\n")

            for task in (closed_task, shutdown_task):
                task.cancel()
            await asyncio.gather(closed_task, shutdown_task, return_exceptions=True)
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
        if mirror is not None:
            await mirror.stop()
        await client.close()

    return exit_code


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    try:
        config = build_config(args)
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    setup_logging(config.log_level, config.log_file)

    try:
        config = resolve_password(config)
    except ValueError as e:
        logger.error(str(e))
        return 1

    return asyncio.run(run(config))


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
