"""Command line access to the shared installation state.

Usage:
    python -m kaspa_aio state                 # Print the installation document
    python -m kaspa_aio mode                  # Fresh install or reconfiguration
    python -m kaspa_aio services              # Live status of installed services
    python -m kaspa_aio node --wait 60        # Find the Kaspa node RPC port
    python -m kaspa_aio link modify --profile kaspa-node
    python -m kaspa_aio reset --yes           # Forget the installation
"""

import argparse
import asyncio
import json
import logging
import sys

from kaspa_aio import __version__
from kaspa_aio.config import settings
from kaspa_aio.core.error_presenter import ErrorDisplay, ErrorPresenter, FaultCategory
from kaspa_aio.core.navigation import NavigationContextCodec
from kaspa_aio.core.reconfiguration import InstallMode, ReconfigurationClassifier
from kaspa_aio.models.navigation import NavigationAction, NavigationContext
from kaspa_aio.models.service_status import ServiceState
from kaspa_aio.services.port_resolver import PortResolver
from kaspa_aio.services.service_status import ServiceStatusProbe
from kaspa_aio.state.store import StateStore

logger = logging.getLogger(__name__)

JSON_LOG_FORMAT = '{"time":"%(asctime)s","level":"%(levelname)s","name":"%(name)s","message":"%(message)s"}'
TEXT_LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(config=settings) -> None:
    """JSON lines in production, human readable output in development."""
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format=TEXT_LOG_FORMAT if config.dev_mode else JSON_LOG_FORMAT,
    )


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser."""
    parser = argparse.ArgumentParser(
        prog="kaspa-aio",
        description="Kaspa All-in-One installation state",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print machine readable JSON",
    )

    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("state", help="Print the installation state document")
    commands.add_parser("mode", help="Show whether the wizard runs a fresh install or a reconfiguration")
    commands.add_parser("services", help="Show live status of the installed services")

    node = commands.add_parser("node", help="Find the port the Kaspa node answers on")
    node.add_argument(
        "--wait",
        type=float,
        metavar="SECONDS",
        default=0.0,
        help="Keep retrying for up to SECONDS before giving up",
    )

    link = commands.add_parser("link", help="Print a wizard URL carrying navigation context")
    link.add_argument("action", choices=[a.value for a in NavigationAction])
    link.add_argument("--profile", help="Profile the action applies to")
    link.add_argument("--service", help="Service the action applies to")

    reset = commands.add_parser("reset", help="Delete the installation state")
    reset.add_argument("--yes", action="store_true", help="Confirm deletion")
    return parser


def _print(data, as_json: bool) -> None:
    if as_json:
        print(json.dumps(data, indent=2, default=str))
    elif isinstance(data, dict):
        for key, value in data.items():
            print(f"{key}: {value}")
    else:
        print(data)


def _print_error(display: ErrorDisplay) -> None:
    print(display.user_message, file=sys.stderr)
    for step in display.remediation_steps:
        print(f"  - {step}", file=sys.stderr)


async def run(
    args: argparse.Namespace,
    store: StateStore | None = None,
    probe: ServiceStatusProbe | None = None,
    resolver: PortResolver | None = None,
) -> int:
    """Execute one parsed command; returns the process exit code."""
    store = store or StateStore.from_settings()
    presenter = ErrorPresenter()

    if args.command == "state":
        state = await store.read()
        if state is None:
            _print_error(presenter.present(FaultCategory.NO_INSTALL_FOUND, store.backend.location))
            return 1
        print(json.dumps(state.to_document(), indent=2))
        return 0

    if args.command == "mode":
        classifier = ReconfigurationClassifier()
        state = await store.read()
        decision = classifier.detect_mode(state)
        split = classifier.split_profiles(state)
        _print({
            "mode": decision.mode.value,
            "reason": decision.reason,
            "options": [o.value for o in decision.options],
            "installed": split.installed,
            "available": split.available,
            "unknown": split.unknown,
        }, args.json)
        return 0

    if args.command == "services":
        state = await store.read()
        if state is None:
            _print_error(presenter.present(FaultCategory.NO_INSTALL_FOUND, store.backend.location))
            return 1
        probe = probe or ServiceStatusProbe()
        if not await probe.is_runtime_available():
            _print_error(presenter.show_runtime_unavailable())
            return 1
        statuses = await probe.get_status([s.name for s in state.services])
        if args.json:
            _print([s.model_dump(mode="json", by_alias=True) for s in statuses], True)
        else:
            for status in statuses:
                uptime = f" (up {status.uptime})" if status.uptime else ""
                print(f"{status.name}: {status.status.value}{uptime}")
        return 0 if all(s.status != ServiceState.NOT_FOUND for s in statuses) else 1

    if args.command == "node":
        resolver = resolver or PortResolver(fallback_ports=settings.kaspa_node_fallback_ports)
        try:
            if args.wait > 0:
                result = await resolver.wait_until_reachable(args.wait, poll_interval=min(args.wait, 5.0))
            else:
                result = await resolver.connect()
        finally:
            await resolver.close()
        if not result.connected:
            _print_error(presenter.present(FaultCategory.DEPENDENT_SERVICE_UNAVAILABLE, result.error))
            return 1
        _print(result.model_dump(mode="json"), args.json)
        return 0

    if args.command == "link":
        codec = NavigationContextCodec()
        context = NavigationContext(
            action=NavigationAction(args.action),
            profile=args.profile,
            service=args.service,
            return_url=codec.dashboard_url(),
        )
        print(codec.wizard_url(context))
        return 0

    if args.command == "reset":
        if not args.yes:
            print("Refusing to delete the installation state without --yes", file=sys.stderr)
            return 1
        removed = await store.reset()
        print("Installation state removed" if removed else "No installation state to remove")
        return 0

    raise ValueError(f"Unknown command: {args.command}")


def main(argv: list[str] | None = None) -> int:
    parser = create_argument_parser()
    args = parser.parse_args(argv)
    configure_logging()
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        return 130
    except Exception as e:
        logger.debug("Command failed", exc_info=True)
        category = ErrorPresenter.category_for_exception(e)
        _print_error(ErrorPresenter().present(category, e))
        return 1
