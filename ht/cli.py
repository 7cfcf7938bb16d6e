"""Command-line flags.

Parses the flags with argparse and derives the three option groups used by
the item parser, the transport and the printer.
"""

import argparse
import re
import sys

from ht import __version__
from ht.exchange import DEFAULT_TIMEOUT, ExchangeOptions
from ht.output import OutputOptions
from ht.parser import InputOptions

RE_NUMBER = re.compile(r"[0-9.]+")
RE_DURATION = re.compile(r"(?:(?:\d+(?:\.\d*)?|\.\d+)(?:ns|us|µs|ms|s|m|h))+")
RE_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")

DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


class OptionSet:
    """Options for each stage of the pipeline."""

    __slots__ = ("input", "exchange", "output")

    def __init__(
        self,
        input: InputOptions,
        exchange: ExchangeOptions,
        output: OutputOptions,
    ) -> None:
        self.input = input
        self.exchange = exchange
        self.output = output


def build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser for the ht CLI."""
    parser = argparse.ArgumentParser(
        prog="ht",
        usage="%(prog)s [options] [METHOD] URL [ITEM ...]",
        description=(
            "ht v{ver} — a command-line HTTP client.\n\n"
            "Request items:\n"
            "  Name:Value     HTTP header\n"
            "  name==value    URL query parameter\n"
            "  name=value     data field (JSON string or form field)\n"
            "  name:=json     raw JSON field\n"
            "  name@path      file upload (with --form)\n\n"
            "Prefix a value with '@' to read it from a file, or use '@-' to "
            "read it from standard input."
        ).format(ver=__version__),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        add_help=False,
        epilog=(
            "Examples:\n"
            "  ht example.com/api/users\n"
            "  ht PUT example.com/api/users/1 name=alice admin:=true\n"
            "  ht --form POST :8080/upload comment=hi file@photo.jpg\n"
        ),
    )

    parser.add_argument(
        "args",
        nargs="*",
        metavar="ARG",
        help="HTTP method, URL and request items.",
    )

    body = parser.add_mutually_exclusive_group()
    body.add_argument(
        "-j",
        "--json",
        action="store_true",
        help="Data items are serialized as JSON (default).",
    )
    body.add_argument(
        "-f",
        "--form",
        action="store_true",
        help="Data items are serialized as form fields.",
    )

    parser.add_argument(
        "-p",
        "--print",
        dest="print_flag",
        default=None,
        help="What the output should contain (any of H, B, h, b).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Print the request as well as the response (--print=HBhb).",
    )
    parser.add_argument(
        "-h",
        "--headers",
        action="store_true",
        help="Print only the response headers (--print=h).",
    )
    parser.add_argument(
        "-b",
        "--body",
        action="store_true",
        help="Print only the response body (--print=b).",
    )
    parser.add_argument(
        "--ignore-stdin",
        action="store_true",
        help="Do not attempt to read stdin.",
    )
    parser.add_argument(
        "-d",
        "--download",
        action="store_true",
        help="Download the response body to a file.",
    )
    parser.add_argument(
        "-o",
        "--output",
        default=None,
        help="Output file for --download.",
    )
    parser.add_argument(
        "--overwrite",
        action="store_true",
        help="Overwrite an existing file with --download.",
    )
    parser.add_argument(
        "--verify",
        default="yes",
        help="Verify the host's TLS certificate, 'yes' (default) or 'no'.",
    )
    parser.add_argument(
        "--timeout",
        default=f"{DEFAULT_TIMEOUT:g}s",
        help="Seconds or a duration such as 1m30s; 0 disables the timeout.",
    )
    parser.add_argument(
        "--check-status",
        action="store_true",
        help="Exit with 3, 4 or 5 on 3xx, 4xx or 5xx responses.",
    )
    parser.add_argument(
        "-a",
        "--auth",
        default=None,
        help="Basic auth credentials as USER[:PASSWORD].",
    )
    parser.add_argument(
        "--pretty",
        default=None,
        help="Output formatting: all, format or none.",
    )
    parser.add_argument(
        "-F",
        "--follow",
        action="store_true",
        help="Follow 30x Location redirects.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Log debugging information to stderr.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--help",
        action="help",
        help="Show this help message and exit.",
    )

    return parser


def parse_print_flag(
    print_flag: str | None,
    verbose: bool,
    headers: bool,
    body: bool,
    stdout_is_terminal: bool,
    options: OutputOptions,
) -> None:
    """Set the print_* fields of ``options``.

    Raises:
        ValueError: If --print holds characters other than HBhb.
    """
    if print_flag is None:
        if headers:
            options.print_response_header = True
        elif body:
            options.print_response_body = True
        elif verbose:
            options.print_request_header = True
            options.print_request_body = True
            options.print_response_header = True
            options.print_response_body = True
        elif stdout_is_terminal:
            options.print_response_header = True
            options.print_response_body = True
        else:
            options.print_response_body = True
        return

    for c in print_flag:
        if c == "H":
            options.print_request_header = True
        elif c == "B":
            options.print_request_body = True
        elif c == "h":
            options.print_response_header = True
        elif c == "b":
            options.print_response_body = True
        else:
            raise ValueError(
                f"invalid char in --print value (must consist of HBhb): {c}"
            )


def parse_pretty(pretty: str | None, stdout_is_terminal: bool) -> bool:
    """Return whether bodies should be formatted.

    Raises:
        ValueError: On unknown or unsupported values.
    """
    if pretty is None or pretty == "":
        return stdout_is_terminal
    if pretty in ("all", "format"):
        return True
    if pretty == "none":
        return False
    if pretty == "colors":
        raise ValueError("--pretty=colors is not implemented")
    raise ValueError(f"unknown value of --pretty: {pretty}")


def parse_timeout(timeout: str) -> float | None:
    """Parse ``30``, ``2.5`` or ``1m30s`` into seconds; 0 means no timeout.

    Raises:
        ValueError: If the value is neither a number nor a duration.
    """
    if RE_NUMBER.fullmatch(timeout):
        try:
            seconds = float(timeout)
        except ValueError:
            seconds = None
    elif RE_DURATION.fullmatch(timeout):
        seconds = sum(
            float(amount) * DURATION_UNITS[unit]
            for amount, unit in RE_DURATION_PART.findall(timeout)
        )
    else:
        seconds = None

    if seconds is None:
        raise ValueError(
            "Value of --timeout must be a number or duration string: "
            f"{timeout}"
        )
    return seconds or None


def parse_verify(verify: str) -> bool:
    verify = verify.lower()
    if verify in ("", "yes"):
        return True
    if verify == "no":
        return False
    raise ValueError("Verify flag must be 'yes' or 'no'")


def parse_auth(auth: str) -> tuple[str, str]:
    """Split ``user:password``; a missing password is empty."""
    username, _, password = auth.partition(":")
    return username, password


def build_option_set(
    args: argparse.Namespace,
    stdin_is_terminal: bool,
    stdout_is_terminal: bool,
) -> OptionSet:
    """Derive the option groups from parsed flags.

    Raises:
        ValueError: If a flag value is invalid.
    """
    output = OutputOptions(
        download=args.download,
        output_file=args.output,
        overwrite=args.overwrite,
    )
    parse_print_flag(
        args.print_flag,
        args.verbose,
        args.headers,
        args.body,
        stdout_is_terminal,
        output,
    )
    output.enable_format = parse_pretty(args.pretty, stdout_is_terminal)

    exchange = ExchangeOptions(
        timeout=parse_timeout(args.timeout),
        follow_redirects=args.follow,
        verify=parse_verify(args.verify),
        auth=parse_auth(args.auth) if args.auth else None,
        check_status=args.check_status,
    )
    if output.download:
        exchange.timeout = None
        exchange.follow_redirects = True

    input_options = InputOptions(
        form=args.form,
        read_stdin=not args.ignore_stdin and not stdin_is_terminal,
    )

    return OptionSet(input=input_options, exchange=exchange, output=output)


def parse_cli(
    argv: list[str] | None = None,
    stdin_is_terminal: bool = False,
    stdout_is_terminal: bool | None = None,
) -> tuple[argparse.ArgumentParser, argparse.Namespace, OptionSet]:
    """Parse and validate command-line arguments.

    Args:
        argv: Optional list of arguments (defaults to sys.argv).
        stdin_is_terminal: Whether stdin is interactive.
        stdout_is_terminal: Whether stdout is interactive (detected when
            omitted).

    Returns:
        The parser (for usage output), the namespace and the option set.
    """
    if stdout_is_terminal is None:
        stdout_is_terminal = sys.stdout.isatty()

    parser = build_parser()
    args = parser.parse_intermixed_args(argv)
    try:
        option_set = build_option_set(args, stdin_is_terminal, stdout_is_terminal)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    return parser, args, option_set
