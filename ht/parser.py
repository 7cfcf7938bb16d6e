"""Request item parsing.

Turns ``[METHOD] URL [ITEM ...]`` into a RequestModel. Items use five
operators, chosen by the leftmost trigger character in the item:

    name:=json    raw JSON body field
    name:value    header
    name==value   URL query parameter
    name=value    body data field
    name@path     multipart file upload (form bodies only)

Values of the first four kinds may be written as ``@path`` to read a file,
or ``@-`` to read standard input.
"""

from __future__ import annotations

import json
import logging
import re
from typing import BinaryIO
from urllib.parse import urlsplit, urlunsplit

from ht.errors import OperationalError, UsageError
from ht.models import (
    FORM_BODY,
    JSON_BODY,
    RAW_BODY,
    Field,
    RequestDraft,
    RequestModel,
)

logger = logging.getLogger(__name__)

RE_METHOD = re.compile(r"[a-zA-Z]+")
RE_HEADER_FIELD_NAME = re.compile(r"[-!#$%&'*+.^_|~a-zA-Z0-9]+")
RE_SCHEME = re.compile(r"^[a-zA-Z][a-zA-Z0-9+\-.]*://")

DEFAULT_SCHEME = "http"
DEFAULT_HOST = "localhost"

STDIN_MARKER = "-"

UNKNOWN_ITEM = "unknown"
HEADER_ITEM = "header"
PARAMETER_ITEM = "parameter"
DATA_ITEM = "data"
RAW_JSON_ITEM = "raw-json"
FILE_ITEM = "file"


class InputOptions:
    """Options that influence how request items are interpreted."""

    __slots__ = ("form", "read_stdin")

    def __init__(self, form: bool = False, read_stdin: bool = False) -> None:
        self.form = form
        self.read_stdin = read_stdin

    def __repr__(self) -> str:
        return f"InputOptions(form={self.form!r}, read_stdin={self.read_stdin!r})"


class StdinSource:
    """Standard input as a resource that can be read exactly once."""

    __slots__ = ("_stream", "consumed")

    def __init__(self, stream: BinaryIO | None) -> None:
        self._stream = stream
        self.consumed = False

    def read(self) -> bytes:
        """Read the whole stream.

        Raises:
            UsageError: If the stream has already been read.
            OperationalError: If reading fails.
        """
        if self.consumed:
            raise UsageError("standard input has already been consumed")
        self.consumed = True
        if self._stream is None:
            return b""
        try:
            return self._stream.read()
        except OSError as exc:
            raise OperationalError(f"failed to read stdin: {exc}") from exc

    def read_text(self, name: str) -> str:
        """Read the whole stream as UTF-8 text for the field ``name``."""
        data = self.read()
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise OperationalError(
                f"reading field value of '{name}' from stdin: {exc}",
                field=name,
            ) from exc


def parse_args(
    args: list[str],
    stdin: BinaryIO | StdinSource | None = None,
    options: InputOptions | None = None,
) -> RequestModel:
    """Parse positional arguments into a RequestModel.

    Args:
        args: ``[METHOD] URL [ITEM ...]``.
        stdin: Byte stream (or StdinSource) for ``@-`` values and raw bodies.
        options: Input options; defaults to JSON bodies without stdin.

    Returns:
        The parsed RequestModel.

    Raises:
        UsageError: If the arguments are malformed.
        OperationalError: If stdin or a raw JSON file cannot be read.
    """
    if options is None:
        options = InputOptions()
    if not isinstance(stdin, StdinSource):
        stdin = StdinSource(stdin)

    arg_method = None
    if len(args) == 0:
        raise UsageError("URL is required")
    if len(args) == 1:
        arg_url, items = args[0], []
    elif RE_METHOD.fullmatch(args[0]):
        arg_method, arg_url, items = args[0], args[1], args[2:]
    else:
        arg_url, items = args[0], args[1:]

    draft = RequestDraft(url=parse_url(arg_url))

    preferred = FORM_BODY if options.form else JSON_BODY
    for item in items:
        parse_item(item, preferred, draft, stdin)

    if options.read_stdin and not stdin.consumed:
        if draft.body_type is not None:
            raise UsageError(
                "request body (from stdin) and request item (key=value) "
                "cannot be mixed"
            )
        draft.body_type = RAW_BODY
        draft.raw = stdin.read()

    if arg_method is not None:
        draft.method = parse_method(arg_method)

    model = draft.freeze()
    logger.debug("Parsed request: %r", model)
    return model


def parse_method(s: str) -> str:
    """Validate and upper-case an HTTP method token."""
    if not RE_METHOD.fullmatch(s):
        raise UsageError(f"METHOD must consist of alphabets: {s}")
    return s.upper()


def parse_url(s: str) -> str:
    """Normalise a URL typed on the command line.

    ``:8080/x`` and ``/x`` imply localhost, a missing scheme defaults to
    http, a bare trailing ``:`` after the host is dropped and an empty path
    becomes ``/``.

    Raises:
        UsageError: If the URL cannot be parsed.
    """
    if s.startswith(":") or s.startswith("/"):
        s = DEFAULT_HOST + s
    if not RE_SCHEME.match(s):
        s = f"{DEFAULT_SCHEME}://{s}"

    try:
        parts = urlsplit(s)
        netloc = parts.netloc
        if netloc.endswith(":"):
            netloc = netloc[:-1]
        parts = parts._replace(netloc=netloc, path=parts.path or "/")
        # Accessing .port validates it.
        parts.port
    except ValueError as exc:
        raise UsageError(f"Invalid URL: {s}") from exc
    return urlunsplit(parts)


def split_item(s: str) -> tuple[str, str, str]:
    """Split a request item into ``(kind, name, value)``.

    The leftmost trigger character decides the kind. ``:=`` and ``==``
    take priority over ``:`` and ``=`` starting at the same position.
    """
    for i, c in enumerate(s):
        if c == ":":
            if s[i + 1 : i + 2] == "=":
                return RAW_JSON_ITEM, s[:i], s[i + 2 :]
            return HEADER_ITEM, s[:i], s[i + 1 :]
        if c == "=":
            if s[i + 1 : i + 2] == "=":
                return PARAMETER_ITEM, s[:i], s[i + 2 :]
            return DATA_ITEM, s[:i], s[i + 1 :]
        if c == "@":
            return FILE_ITEM, s[:i], s[i + 1 :]
    return UNKNOWN_ITEM, "", ""


def parse_item(
    s: str,
    preferred_body_type: str,
    draft: RequestDraft,
    stdin: StdinSource | None = None,
) -> None:
    """Apply a single request item to ``draft``.

    Raises:
        UsageError: On unknown syntax, bad header names, invalid JSON or
            body type conflicts.
        OperationalError: If a value cannot be read.
    """
    if stdin is None:
        stdin = StdinSource(None)

    kind, name, value = split_item(s)

    if kind == DATA_ITEM:
        if draft.body_type not in (JSON_BODY, FORM_BODY):
            draft.body_type = preferred_body_type
        draft.body_fields.append(parse_field(name, value, stdin))

    elif kind == RAW_JSON_ITEM:
        if preferred_body_type != JSON_BODY or draft.body_type not in (
            None,
            JSON_BODY,
        ):
            raise UsageError("raw JSON field item cannot be used in non-JSON body")
        field = resolve_now(parse_field(name, value, stdin))
        try:
            json.loads(field.value, parse_constant=reject_constant)
        except ValueError as exc:
            raise UsageError(f"invalid JSON at '{name}': {field.value}") from exc
        draft.body_type = JSON_BODY
        draft.raw_json_fields.append(field)

    elif kind == HEADER_ITEM:
        if not RE_HEADER_FIELD_NAME.fullmatch(name):
            raise UsageError(f"invalid header field name: {name}")
        draft.header_fields.append(parse_field(name, value, stdin))

    elif kind == PARAMETER_ITEM:
        draft.parameters.append(parse_field(name, value, stdin))

    elif kind == FILE_ITEM:
        if preferred_body_type != FORM_BODY or draft.body_type not in (
            None,
            FORM_BODY,
        ):
            raise UsageError(
                "form file field item cannot be used in non-form body "
                "(perhaps you meant --form?)"
            )
        draft.body_type = FORM_BODY
        draft.files.append(Field(name, value, is_file=True))

    else:
        raise UsageError(f"unknown request item: {s}")


def reject_constant(name: str) -> None:
    """Reject NaN and Infinity, which are not valid JSON."""
    raise ValueError(f"invalid JSON constant: {name}")


def parse_field(name: str, value: str, stdin: StdinSource) -> Field:
    """Build a Field, handling the ``@path`` and ``@-`` value forms."""
    if not value.startswith("@"):
        return Field(name, value)
    path = value[1:]
    if path == STDIN_MARKER:
        return Field(name, stdin.read_text(name))
    return Field(name, path, is_file=True)


def resolve_now(field: Field) -> Field:
    """Read a file-backed field immediately and return it as inline."""
    if not field.is_file:
        return field
    try:
        with open(field.value, "r", encoding="utf-8") as fh:
            return Field(field.name, fh.read())
    except (OSError, UnicodeDecodeError) as exc:
        raise OperationalError(
            f"reading field value of '{field.name}': {exc}",
            field=field.name,
            path=field.value,
        ) from exc
