#!/usr/bin/env python3
"""
Conversions API Relay Runner

Main entry point for running the relay server.
"""

import argparse
import logging

import uvicorn

from capi_relay.config import load_config
from capi_relay.server import create_app


def setup_logging(level: str = 'INFO'):
    """Setup logging configuration."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )


# Get logger after setup
logger = logging.getLogger(__name__)


def run_server(args) -> None:
    """Run a single relay server."""
    setup_logging(args.log_level)

    config = load_config()
    config.host = args.host or config.host
    config.port = args.port or config.port

    app = create_app(config)
    logger.info(f'Starting Conversions API relay on {config.host}:{config.port}')
    uvicorn.run(
        app,
        host=config.host,
        port=config.port,
        log_level=args.log_level.lower(),
    )


def print_examples() -> None:
    print('Example configurations:')
    print()
    print('1. Run the relay:')
    print('   python run_server.py run --port 8000')
    print()
    print('2. Route events to the Events Manager test stream:')
    print('   FACEBOOK_TEST_EVENT_CODE=TEST12345 python run_server.py run')
    print()
    print('3. Environment variables:')
    print('   FACEBOOK_ACCESS_TOKEN=<graph api token>   (required)')
    print('   FACEBOOK_TEST_EVENT_CODE=TEST12345')
    print('   FACEBOOK_GRAPH_API_VERSION=v19.0')
    print('   CAPI_HOST=0.0.0.0')
    print('   CAPI_PORT=8000')
    print('   CAPI_CORS_ORIGINS=https://www.example.com')


def main():
    parser = argparse.ArgumentParser(description='Conversions API Relay Runner')
    subparsers = parser.add_subparsers(
        dest='command', help='Available commands'
    )

    run_parser = subparsers.add_parser('run', help='Run the relay server')
    run_parser.add_argument(
        '--host', default=None, help='Host to bind to (default: CAPI_HOST)'
    )
    run_parser.add_argument(
        '--port', type=int, default=None, help='Port to bind to (default: CAPI_PORT)'
    )
    run_parser.add_argument(
        '--log-level',
        default=load_config().log_level.upper(),
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
    )

    subparsers.add_parser('examples', help='Show example configurations')

    args = parser.parse_args()

    if args.command == 'run':
        run_server(args)
    elif args.command == 'examples':
        print_examples()
    else:
        parser.print_help()


if __name__ == '__main__':
    main()
