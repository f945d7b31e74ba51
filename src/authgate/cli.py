"""Command-line interface for the authentication gateway."""

import argparse
import logging
import sys

from authgate import __version__
from authgate.errors import ConfigurationError


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="authgate - Serve a static site behind OAuth2 login"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the gateway")
    serve_parser.add_argument("--host", help="Interface to bind (default: HOST)")
    serve_parser.add_argument("--port", type=int, help="Port to bind (default: PORT)")
    serve_parser.add_argument(
        "--root",
        help="Directory with the static content (default: CONTENT_ROOT)",
    )
    serve_parser.add_argument(
        "--html5",
        action="store_true",
        default=None,
        help="Serve the index file for unmatched paths",
    )

    # Check-config command
    subparsers.add_parser("check-config", help="Validate the environment configuration")

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        return 0

    from authgate.config import load_settings

    try:
        settings = load_settings()
    except ConfigurationError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    overrides = {
        "host": args.host if args.command == "serve" else None,
        "port": args.port if args.command == "serve" else None,
        "content_root": args.root if args.command == "serve" else None,
        "html5": args.html5 if args.command == "serve" else None,
    }
    settings = settings.model_copy(update={k: v for k, v in overrides.items() if v is not None})

    from authgate.api.app import build_providers, create_app

    try:
        providers = build_providers(settings)
    except ConfigurationError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    if args.command == "check-config":
        print(f"environment: {settings.app_env}")
        print(f"base url:    {settings.base_url}")
        print(f"content:     {settings.content_root}")
        print(f"providers:   {', '.join(providers.names)}")
        return 0

    import uvicorn

    uvicorn.run(
        create_app(settings, providers),
        host=settings.host,
        port=settings.port,
        log_config=None,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
