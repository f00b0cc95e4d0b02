"""
mockapi Serve CLI

Serves a YAML mock scenario until interrupted, then checks that every
required expectation was called.

Examples:
    # Serve a scenario on port 8080
    mockapi-serve scenario.yaml --port 8080

    # Verbose request matching
    mockapi-serve scenario.yaml --log-level debug
"""

import argparse
import logging
import sys

from .common.errors import ExpectationsFailed
from .mock.server import MockConfig, MockServer
from .scenario.scenario_config import MockScenario


def cmd_serve(args) -> int:
    """
    Serve a scenario in the foreground.

    Args:
        args: Parsed command-line arguments

    Returns:
        Process exit code
    """
    print(f"🚀 mockapi server starting...")
    print(f"   Scenario: {args.scenario}")

    try:
        scenario = MockScenario.from_yaml(args.scenario)
    except (OSError, ValueError) as e:
        print(f"❌ Failed to load scenario: {e}")
        return 1

    config = MockConfig(
        host=args.host,
        port=args.port,
        log_level=args.log_level,
        unmatched_status=args.unmatched_status
    )
    server = MockServer(config=config)
    handles = scenario.apply(server)

    print(f"   Host: {args.host}:{args.port}")
    print(f"   Expectations loaded: {len(handles)}")
    print()

    server.serve_forever()

    print()
    for handle in handles:
        print(f"   {handle.expectation.describe()}: called {handle.call_count} time(s)")

    try:
        server.assert_expectations()
    except ExpectationsFailed as e:
        print(f"❌ {e}")
        return 1

    print("✅ All expectations met")
    return 0


def main(argv=None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog='mockapi-serve',
        description='Serve a YAML mock API scenario',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    parser.add_argument('scenario', help='YAML scenario file')
    parser.add_argument('--host', default='127.0.0.1', help='Host to bind (default: 127.0.0.1)')
    parser.add_argument('-p', '--port', type=int, default=8080, help='Port to bind (default: 8080)')
    parser.add_argument('--log-level', default='info', choices=['debug', 'info', 'warning', 'error'],
                        help='Log level (default: info)')
    parser.add_argument('--unmatched-status', type=int, default=500,
                        help='Status sent for unexpected requests (default: 500)')

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format='%(asctime)s %(name)s %(levelname)s %(message)s'
    )

    return cmd_serve(args)


if __name__ == '__main__':
    sys.exit(main())
