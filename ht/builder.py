"""Request building.

Converts a RequestModel into a WireRequest: the final URL with merged query
string, the ordered header list and the encoded body.
"""

from __future__ import annotations

import base64
import json
import logging
import os
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

from urllib3.fields import RequestField
from urllib3.filepost import choose_boundary, encode_multipart_formdata

from ht import USER_AGENT
from ht.errors import OperationalError
from ht.models import (
    EmptyBody,
    Field,
    FormBody,
    JSONBody,
    RawBody,
    RequestModel,
)

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded; charset=utf-8"

# attr-char from RFC 5987, minus the alphanumerics quote() never escapes
RFC5987_SAFE = "!#$&+-.^_`|~"


class WireRequest:
    """A fully resolved request, ready for the transport and the printer."""

    __slots__ = ("method", "url", "headers", "body", "content_type")

    def __init__(
        self,
        method: str,
        url: str,
        headers: list[tuple[str, str]],
        body: bytes | None = None,
        content_type: str | None = None,
    ) -> None:
        self.method = method
        self.url = url
        self.headers = headers
        self.body = body
        self.content_type = content_type

    @property
    def content_length(self) -> int:
        return len(self.body) if self.body is not None else 0

    def header(self, name: str) -> str | None:
        """Return the first value of header ``name`` (case-insensitive)."""
        wanted = name.lower()
        for key, value in self.headers:
            if key.lower() == wanted:
                return value
        return None

    def __repr__(self) -> str:
        return (
            f"WireRequest(method={self.method!r}, url={self.url!r}, "
            f"headers=<{len(self.headers)} headers>, "
            f"body=<{self.content_length} bytes>)"
        )


def build_request(
    model: RequestModel, auth: tuple[str, str] | None = None
) -> WireRequest:
    """Build the wire-level request for ``model``.

    Args:
        model: The parsed request.
        auth: Optional ``(username, password)`` for HTTP basic auth.

    Returns:
        The WireRequest. Nothing is returned if any step fails.

    Raises:
        OperationalError: If a field value cannot be read or the body
            cannot be serialised.
    """
    url = build_url(model)
    headers = build_headers(model)
    body, content_type = build_body(model)

    names = {name.lower() for name, _ in headers}
    if "content-type" not in names and content_type:
        headers.append(("Content-Type", content_type))
    if "user-agent" not in names:
        headers.append(("User-Agent", USER_AGENT))
    if auth is not None and "authorization" not in names:
        headers.append(("Authorization", basic_auth_value(*auth)))

    wire = WireRequest(
        method=model.method,
        url=url,
        headers=headers,
        body=body,
        content_type=content_type,
    )
    logger.debug("Built request: %r", wire)
    return wire


def build_url(model: RequestModel) -> str:
    """Append the command-line parameters to the URL's own query string."""
    parts = urlsplit(model.url)
    query = parse_qsl(parts.query, keep_blank_values=True)
    for field in model.parameters:
        query.append((field.name, resolve_field_value(field)))
    return urlunsplit(parts._replace(query=urlencode(query)))


def build_headers(model: RequestModel) -> list[tuple[str, str]]:
    """Resolve header fields in order, keeping duplicates."""
    return [
        (field.name, resolve_field_value(field).strip())
        for field in model.header_fields
    ]


def build_body(model: RequestModel) -> tuple[bytes | None, str | None]:
    """Encode the body, returning ``(payload, content_type)``."""
    body = model.body
    if isinstance(body, EmptyBody):
        return None, None
    if isinstance(body, JSONBody):
        return build_json_body(body)
    if isinstance(body, FormBody):
        if body.files:
            return build_multipart_body(body)
        return build_urlencoded_body(body)
    if isinstance(body, RawBody):
        return body.data, JSON_CONTENT_TYPE
    raise TypeError(f"unknown body type: {body!r}")


def build_json_body(body: JSONBody) -> tuple[bytes, str]:
    obj = {}
    for field in body.fields:
        obj[field.name] = resolve_field_value(field)
    for field in body.raw_json_fields:
        value = resolve_field_value(field)
        try:
            obj[field.name] = json.loads(value)
        except ValueError as exc:
            raise OperationalError(
                f"parsing JSON value of '{field.name}': {exc}", field=field.name
            ) from exc

    try:
        payload = json.dumps(obj, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError) as exc:
        raise OperationalError(f"marshaling JSON of HTTP body: {exc}") from exc
    return payload.encode("utf-8"), JSON_CONTENT_TYPE


def build_urlencoded_body(body: FormBody) -> tuple[bytes, str]:
    pairs = [(field.name, resolve_field_value(field)) for field in body.fields]
    return urlencode(pairs).encode("ascii"), FORM_CONTENT_TYPE


def build_multipart_body(body: FormBody) -> tuple[bytes, str]:
    """Encode inline fields then files as ``multipart/form-data``."""
    parts = []
    for field in body.fields:
        value = resolve_field_value(field)
        parts.append(
            RequestField(
                name=field.name,
                data=value.encode("utf-8"),
                headers={
                    "Content-Disposition": build_content_disposition(field.name)
                },
            )
        )
    for field in body.files:
        filename = upload_filename(field.value)
        parts.append(
            RequestField(
                name=field.name,
                data=read_file(field),
                filename=filename,
                headers={
                    "Content-Disposition": build_content_disposition(
                        field.name, filename
                    )
                },
            )
        )
    return encode_multipart_formdata(parts, boundary=choose_boundary())


def upload_filename(path: str) -> str:
    """Return the last element of ``path``, ignoring trailing slashes."""
    return os.path.basename(path.rstrip("/")) or path


def build_content_disposition(name: str, filename: str = "") -> str:
    """Format a ``form-data`` Content-Disposition value.

    Names that cannot be safely quoted use the RFC 5987 ``name*=`` form.
    """
    disposition = "form-data"
    if name:
        disposition += "; " + format_disposition_param("name", name)
    if filename:
        disposition += "; " + format_disposition_param("filename", filename)
    return disposition


def format_disposition_param(key: str, value: str) -> str:
    if need_escape(value):
        return f"{key}*=utf-8''{quote(value, safe=RFC5987_SAFE)}"
    return f'{key}="{value}"'


def need_escape(s: str) -> bool:
    for c in s:
        if ord(c) > 127:
            return True
        if ord(c) < 32 and c != "\t":
            return True
        if c in ('"', "\\"):
            return True
    return False


def basic_auth_value(username: str, password: str) -> str:
    token = base64.b64encode(f"{username}:{password}".encode("utf-8"))
    return "Basic " + token.decode("ascii")


def resolve_field_value(field: Field) -> str:
    """Return the field's value, reading it from disk when file-backed."""
    if not field.is_file:
        return field.value
    try:
        return read_file(field).decode("utf-8")
    except UnicodeDecodeError as exc:
        raise OperationalError(
            f"reading field value of '{field.name}': {exc}",
            field=field.name,
            path=field.value,
        ) from exc


def read_file(field: Field) -> bytes:
    try:
        with open(field.value, "rb") as fh:
            return fh.read()
    except OSError as exc:
        raise OperationalError(
            f"reading field value of '{field.name}': {exc}",
            field=field.name,
            path=field.value,
        ) from exc
