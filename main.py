"""CLI entry point: python main.py monitor | deploy | serve"""

import argparse
import asyncio
import json
import logging
import sys

from src.api.dependencies import build_services
from src.api_errors import HelmsmanError
from src.deployment import DeploymentConfig, DeploymentStatus, Environment, Strategy
from src.logging_config import LogFormat, LoggingConfig, LogLevel, configure_logging
from src.settings import get_settings

logger = logging.getLogger("helmsman")


async def run_monitor(args) -> int:
    services = build_services(get_settings())
    monitor = services.monitor
    await monitor.start(interval_seconds=args.interval)
    try:
        if args.ticks:
            while monitor.tick_count < args.ticks:
                await asyncio.sleep(0.1)
        else:
            await asyncio.Event().wait()
    finally:
        await monitor.stop()
    status = await monitor.get_system_status()
    print(json.dumps(status.to_dict(), indent=2))
    return 0


async def run_deploy(args) -> int:
    services = build_services(get_settings())
    config = DeploymentConfig(
        environment=Environment(args.environment),
        strategy=Strategy(args.strategy),
        health_check_endpoint=args.health_endpoint,
        rollback_threshold=args.threshold,
        monitoring_duration_seconds=args.duration,
        notification_channels=args.channels,
    )
    record = await services.orchestrator.execute_deployment(config, args.version)
    print(json.dumps(record.to_dict(), indent=2))
    return 0 if record.status == DeploymentStatus.SUCCESS else 1


def run_server(args) -> int:
    import uvicorn

    from src.api import create_app

    uvicorn.run(create_app(), host=args.host, port=args.port)
    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Helmsman - deployment orchestration and infrastructure monitoring"
    )
    parser.add_argument(
        "--log-format", choices=[f.value for f in LogFormat], default="console",
        help="Log output format (default: console)"
    )
    parser.add_argument("--verbose", action="store_true", help="Enable DEBUG logging")
    sub = parser.add_subparsers(dest="command", required=True)

    mon = sub.add_parser("monitor", help="Run the infrastructure monitor")
    mon.add_argument("--interval", type=float, default=None, help="Tick interval in seconds")
    mon.add_argument("--ticks", type=int, default=0, help="Stop after N ticks (default: run forever)")

    dep = sub.add_parser("deploy", help="Run one deployment and wait for the outcome")
    dep.add_argument("version", help="Version to deploy")
    dep.add_argument("--environment", choices=[e.value for e in Environment], default="staging")
    dep.add_argument("--strategy", choices=[s.value for s in Strategy], default="rolling")
    dep.add_argument("--health-endpoint", required=True, help="Health check URL")
    dep.add_argument("--threshold", type=float, default=5.0, help="Rollback error-rate threshold (%%)")
    dep.add_argument("--duration", type=float, default=300.0, help="Monitoring window in seconds")
    dep.add_argument("--channels", nargs="*", default=["email", "slack"], help="Notification channels")

    srv = sub.add_parser("serve", help="Run the operator API")
    srv.add_argument("--host", default="127.0.0.1")
    srv.add_argument("--port", type=int, default=8000)

    args = parser.parse_args()

    configure_logging(LoggingConfig(
        level=LogLevel.DEBUG if args.verbose else LogLevel.INFO,
        format=LogFormat(args.log_format),
    ))

    try:
        if args.command == "serve":
            return run_server(args)
        if args.command == "monitor":
            return asyncio.run(run_monitor(args))
        return asyncio.run(run_deploy(args))
    except KeyboardInterrupt:
        return 130
    except HelmsmanError as exc:
        logger.error("%s: %s", exc.error_code.value, exc.message)
        return 2


if __name__ == "__main__":
    sys.exit(main())
