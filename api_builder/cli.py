"""
Command-line interface for the API Builder server.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from . import __version__
from .config import USER_CONFIG_DIR, BuilderConfig
from .connectors import ConnectorRegistry, ProviderNotFoundError
from .monitoring import APIMonitoringService
from .tracing import setup_logging

logger = logging.getLogger(__name__)

RUN_SERVER = "RUN_SERVER"


def create_parser() -> argparse.ArgumentParser:
    """Create the command-line argument parser."""
    parser = argparse.ArgumentParser(
        prog="api-builder",
        description="API Builder server - connectors, generation and request monitoring",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start server with default configuration
  api-builder serve

  # Start server on another port
  api-builder serve --port 4000

  # Initialize configuration in user directory
  api-builder init

  # List available providers
  api-builder list

  # Check a provider's credentials
  api-builder check hubspot

  # Summarize persisted monitoring data
  api-builder stats
"""
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    # Global options
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Set logging level (default: from configuration, INFO)"
    )

    parser.add_argument(
        "--config",
        type=str,
        help=f"Configuration directory path (default: {USER_CONFIG_DIR})"
    )

    parser.add_argument(
        "--env",
        type=str,
        help="Environment file path (default: ./.env)"
    )

    # Subcommands
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser(
        "serve",
        help="Start the API Builder server"
    )
    serve_parser.add_argument(
        "--host",
        default=None,
        help="Host to bind to (default: localhost)"
    )
    serve_parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to bind to (default: 3002)"
    )

    init_parser = subparsers.add_parser(
        "init",
        help="Initialize API Builder configuration"
    )
    init_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite existing configuration"
    )

    list_parser = subparsers.add_parser(
        "list",
        help="List available providers"
    )
    list_parser.add_argument(
        "--format",
        choices=["table", "json"],
        default="table",
        help="Output format (default: table)"
    )

    check_parser = subparsers.add_parser(
        "check",
        help="Check a provider's configuration and credentials"
    )
    check_parser.add_argument(
        "provider",
        help="Provider id to check"
    )

    config_parser = subparsers.add_parser(
        "config",
        help="Show current configuration"
    )
    config_parser.add_argument(
        "--sources",
        action="store_true",
        help="Show configuration sources"
    )

    subparsers.add_parser(
        "stats",
        help="Summarize persisted API monitoring data"
    )

    return parser


def _cli_overrides(args) -> dict:
    overrides = {}
    server = {}
    if getattr(args, "host", None):
        server["host"] = args.host
    if getattr(args, "port", None):
        server["port"] = args.port
    if args.log_level:
        server["log_level"] = args.log_level
    if server:
        overrides["server"] = server
    return overrides


def _registry(config: BuilderConfig) -> ConnectorRegistry:
    custom = config.get("connectors.custom_registry")
    return ConnectorRegistry(
        custom_registry_path=Path(custom) if custom else None,
        backend_url=config.get("urls.backend"),
        frontend_url=config.get("urls.frontend"),
        timeout=config.get("connectors.timeout", 10.0),
    )


async def cmd_serve(args, config: BuilderConfig):
    """Prepare services; the server itself runs after the event loop exits."""
    from .api.dependencies import init_services

    setup_logging(config.get("server.log_level", "INFO"), config.get("paths.logs"))
    init_services(config)
    return RUN_SERVER


async def cmd_init(args, config: BuilderConfig):
    """Run the init command."""
    config_dir = Path(args.config or USER_CONFIG_DIR).expanduser()
    config_file = config_dir / "config.json"

    if config_file.exists() and not args.force:
        print(f"Configuration already exists: {config_file}")
        print("Use --force to overwrite")
        return 1

    config_dir.mkdir(parents=True, exist_ok=True)

    with open(config_file, "w") as f:
        json.dump({
            "server": {
                "host": "localhost",
                "port": 3002,
                "log_level": "INFO"
            },
            "urls": {
                "backend": "http://localhost:3002",
                "frontend": "http://localhost:8080"
            },
            "paths": {
                "data": str(config_dir / "data"),
                "logs": str(config_dir / "logs")
            }
        }, f, indent=2)

    env_file = config_dir / ".env"
    with open(env_file, "w") as f:
        f.write("# API Builder environment variables\n")
        f.write("# Add provider credentials here\n\n")
        f.write("# Example:\n")
        f.write("# HUBSPOT_CLIENT_ID=...\n")
        f.write("# HUBSPOT_CLIENT_SECRET=...\n")
        f.write("# ALPHA_VANTAGE_API_KEY=...\n")

    (config_dir / "data").mkdir(exist_ok=True)
    (config_dir / "logs").mkdir(exist_ok=True)

    print(f"✓ Initialized API Builder configuration at {config_dir}")
    print(f"  - Configuration: {config_file}")
    print(f"  - Environment: {env_file}")
    print("\nNext steps:")
    print("1. Add provider credentials to .env")
    print("2. Run: api-builder serve")

    return 0


async def cmd_list(args, config: BuilderConfig):
    """Run the list command."""
    providers = _registry(config).list_providers()

    if args.format == "json":
        print(json.dumps(providers, indent=2))
        return 0

    if not providers:
        print("No providers registered")
        return 0

    print(f"{'Provider':<20} {'Auth':<8} {'Description':<40} {'Status':<10}")
    print("-" * 82)

    for provider in providers:
        status = "✅ Ready" if provider["ready"] else "❌ Missing env"
        desc = provider["description"]
        if len(desc) > 40:
            desc = desc[:38] + ".."
        print(f"{provider['id']:<20} {provider['auth_type']:<8} {desc:<40} {status:<10}")

    ready = len([p for p in providers if p["ready"]])
    print(f"\n📊 Total: {len(providers)} providers ({ready} ready)")

    return 0


async def cmd_check(args, config: BuilderConfig):
    """Run the check command."""
    registry = _registry(config)
    print(f"Checking provider: {args.provider}")

    try:
        connector = registry.get_connector(args.provider)
    except ProviderNotFoundError:
        print(f"❌ Provider '{args.provider}' not found")
        print("💡 Available providers:")
        for provider in registry.list_providers():
            print(f"   - {provider['id']}")
        return 1

    info = connector.describe()
    print(f"✅ Provider '{args.provider}' found")
    print(f"   📝 Description: {info['description']}")
    print(f"   🔑 Auth type: {info['auth_type']}")
    print(f"   🏷️  Category: {info['category']}")

    req = connector.check_requirements()
    if req["ready"]:
        print("   ✅ Environment variables: All required variables present")
        if req["present_env"]:
            print(f"      Present: {', '.join(req['present_env'])}")
    else:
        print("   ❌ Environment variables: Missing required variables")
        print(f"      Missing: {', '.join(req['missing_env'])}")
        if req["present_env"]:
            print(f"      Present: {', '.join(req['present_env'])}")

    return 0 if req["ready"] else 1


async def cmd_config(args, config: BuilderConfig):
    """Run the config command."""
    full_config = config.load(_cli_overrides(args))

    if args.sources:
        print("Configuration with sources:")
        print("-" * 60)

        def show_with_sources(cfg, prefix=""):
            for key, value in cfg.items():
                path = f"{prefix}.{key}" if prefix else key
                if isinstance(value, dict):
                    print(f"{path}:")
                    show_with_sources(value, path)
                else:
                    source = config.get_source(path) or "unknown"
                    print(f"{path}: {value} ({source})")

        show_with_sources(full_config)
    else:
        print(json.dumps(full_config, indent=2))

    return 0


async def cmd_stats(args, config: BuilderConfig):
    """Summarize the persisted monitoring file."""
    service = APIMonitoringService(data_file=config.data_dir / "api-monitoring.json")
    if not service.load():
        print(f"No monitoring data found in {config.data_dir}")
        return 1

    stats = service.get_api_stats()
    sla = service.get_sla_metrics()
    alerts = service.get_active_alerts()

    print(f"📊 API monitoring summary ({service.data_file})")
    print("-" * 60)
    print(f"Total calls:           {stats['total_calls']}")
    print(f"Success rate:          {stats['success_rate']:.1f}%")
    print(f"Average response time: {stats['average_response_time']:.0f}ms")
    print(f"SLA uptime:            {sla.actual_uptime:.2f}% (target {sla.slo_target}%)")
    print(f"Active alerts:         {len(alerts)}")

    slowest = service.get_slowest_endpoints(5)
    if slowest:
        print("\nSlowest endpoints:")
        for entry in slowest:
            print(f"  {entry['method']:<7} {entry['endpoint']:<40} {entry['average_response_time']:.0f}ms")

    for alert in alerts:
        print(f"  ⚠️  [{alert.severity}] {alert.message}")

    return 0


async def async_main(args):
    """Async main entry point."""
    if args.env:
        load_dotenv(args.env)
    else:
        load_dotenv()

    config = BuilderConfig(user_dir=Path(args.config).expanduser() if args.config else None)
    config.load(_cli_overrides(args))

    # Default to serve if no command specified
    if not args.command:
        args.command = "serve"

    commands = {
        "serve": cmd_serve,
        "init": cmd_init,
        "list": cmd_list,
        "check": cmd_check,
        "config": cmd_config,
        "stats": cmd_stats,
    }

    cmd_func = commands.get(args.command)
    if cmd_func:
        return await cmd_func(args, config), config

    print(f"Unknown command: {args.command}")
    return 1, config


def main():
    """Main entry point for CLI."""
    parser = create_parser()
    args = parser.parse_args()

    setup_logging(args.log_level or "INFO")

    try:
        exit_code, config = asyncio.run(async_main(args))

        # uvicorn owns its own event loop
        if exit_code == RUN_SERVER:
            import uvicorn
            from .api.main import app

            uvicorn.run(
                app,
                host=config.get("server.host"),
                port=config.get("server.port"),
                log_level=config.get("server.log_level", "INFO").lower(),
            )
            sys.exit(0)

        sys.exit(exit_code or 0)
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
