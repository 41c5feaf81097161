"""Console entrypoint for the Conversions API relay.

- `capi-relay` (defaults to starting the server)
- `capi-relay run ...` / `capi-relay examples` (passed to `run_server.py`)
- `capi-relay hash <value>` prints the normalized SHA-256 digest
- `capi-relay send-test --url <page url>` sends a test event through a relay
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys


_RUN_SERVER_COMMANDS = {"run", "examples"}


def _get_version() -> str:
    try:
        from importlib.metadata import version

        return version("capi-relay")
    except Exception:
        from capi_relay import __version__

        return __version__


def _normalize_argv(argv: list[str]) -> list[str]:
    args = argv[1:]

    if not args:
        return [argv[0], "run"]

    head = args[0]

    if head in {"server", "serve", "start"}:
        return [argv[0], "run", *args[1:]]

    # Allow `capi-relay --port 8000` by defaulting to the run subcommand.
    if head.startswith("-"):
        return [argv[0], "run", *args]

    # Pass-through to existing subcommands.
    if head in _RUN_SERVER_COMMANDS:
        return argv

    # Anything else goes to run_server, which prints its usage.
    return argv


def _hash_command(args: list[str]) -> int:
    from capi_relay.hashing import hash_identifier

    parser = argparse.ArgumentParser(prog="capi-relay hash")
    parser.add_argument("value", help="Email address or phone number")
    ns = parser.parse_args(args)

    digest = hash_identifier(ns.value)
    if digest is None:
        print("nothing to hash", file=sys.stderr)
        return 1
    print(digest)
    return 0


def _send_test_command(args: list[str]) -> int:
    from capi_relay.events import BrowserContext
    from capi_relay.form_tracking import FormTracker

    parser = argparse.ArgumentParser(prog="capi-relay send-test")
    parser.add_argument("--url", required=True, help="Page URL the event originates from")
    parser.add_argument("--endpoint", default=None, help="Relay endpoint (default: <page origin>/api/capi)")
    parser.add_argument("--pixel-id", default=None, help="Destination pixel (default: FACEBOOK_PIXEL_ID)")
    parser.add_argument("--user-agent", default="capi-relay-cli", help="User agent to report")
    ns = parser.parse_args(args)

    tracker = FormTracker(
        BrowserContext(url=ns.url, user_agent=ns.user_agent),
        pixel_id=ns.pixel_id,
        endpoint_url=ns.endpoint,
    )
    result = asyncio.run(tracker.send_test_event())
    print(json.dumps(result, indent=2))
    return 0 if result.get("success") else 1


def main() -> None:
    if any(arg in {"--version", "-V"} for arg in sys.argv[1:]):
        print(_get_version())
        return

    if len(sys.argv) > 1 and sys.argv[1] == "hash":
        sys.exit(_hash_command(sys.argv[2:]))

    if len(sys.argv) > 1 and sys.argv[1] == "send-test":
        sys.exit(_send_test_command(sys.argv[2:]))

    # `run_server` is installed as a top-level module via setup.py (py_modules).
    import run_server  # type: ignore

    sys.argv = _normalize_argv(sys.argv)
    run_server.main()


if __name__ == "__main__":
    main()
