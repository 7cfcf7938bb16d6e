"""Main entry point.

Ties together the CLI, item parser, builder, transport and printer.
"""

import logging
import sys

import requests

from ht.builder import build_request
from ht.cli import parse_cli
from ht.errors import OperationalError, UsageError
from ht.exchange import exit_status, send_request
from ht.output import FileWriter, new_printer, request_headers
from ht.parser import parse_args


def _is_terminal(stream) -> bool:
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


def main(argv: list[str] | None = None, stdin=None) -> int:
    """Run the ht tool.

    Args:
        argv: Optional argument list (defaults to sys.argv).
        stdin: Optional byte stream standing in for standard input.

    Returns:
        Exit code (0 = success, 1 = error, 2 = usage error, 3/4/5 with
        --check-status).
    """
    if stdin is None:
        stdin = sys.stdin.buffer
    parser, args, options = parse_cli(argv, stdin_is_terminal=_is_terminal(stdin))

    if args.debug:
        logging.basicConfig(
            level=logging.DEBUG,
            stream=sys.stderr,
            format="%(asctime)s %(name)s %(levelname)s %(message)s",
        )

    # --- Parse request items ---
    try:
        model = parse_args(args.args, stdin, options.input)
    except UsageError as exc:
        parser.print_usage(sys.stderr)
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except OperationalError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    # --- Build the request ---
    try:
        wire = build_request(model, auth=options.exchange.auth)
    except OperationalError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    out = options.output
    printer = new_printer(sys.stdout, out)

    if out.print_request_header:
        printer.print_request_line(wire)
        printer.print_headers(request_headers(wire))
    if out.print_request_body:
        printer.print_body(wire.body, wire.content_type)
    if out.print_request_header or out.print_request_body:
        sys.stdout.write("\n")
        sys.stdout.flush()

    # --- Send ---
    try:
        response = send_request(wire, options.exchange, stream=out.download)
    except requests.RequestException as exc:
        print(f"Error: sending HTTP request: {exc}", file=sys.stderr)
        return 1

    with response:
        if out.print_response_header:
            printer.print_status_line(response)
            printer.print_headers(list(response.headers.items()))

        if out.download:
            writer = FileWriter(model.url, out)
            length = response.headers.get("Content-Length")
            printer.print_download(
                int(length) if length and length.isdigit() else None,
                writer.filename,
            )
            sys.stdout.flush()
            try:
                writer.download(response)
            except (OSError, requests.RequestException) as exc:
                print(f"Error: downloading response body: {exc}", file=sys.stderr)
                return 1
        elif out.print_response_body:
            printer.print_body(
                response.content, response.headers.get("Content-Type")
            )
    sys.stdout.flush()

    if options.exchange.check_status:
        return exit_status(response.status_code)
    return 0


if __name__ == "__main__":
    sys.exit(main())
