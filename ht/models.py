"""Request model produced by the item parser and consumed by the builder.

The body is one of four variants (EmptyBody, JSONBody, FormBody, RawBody).
Files only exist on a FormBody and raw JSON fields only on a JSONBody, so
those combinations cannot be expressed.
"""

from __future__ import annotations

JSON_BODY = "json"
FORM_BODY = "form"
RAW_BODY = "raw"


class Field:
    """A single name/value pair from a request item.

    When ``is_file`` is true, ``value`` is a path whose contents are read
    when the request is built.
    """

    __slots__ = ("name", "value", "is_file")

    def __init__(self, name: str, value: str, is_file: bool = False) -> None:
        self.name = name
        self.value = value
        self.is_file = is_file

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Field):
            return NotImplemented
        return (self.name, self.value, self.is_file) == (
            other.name,
            other.value,
            other.is_file,
        )

    def __hash__(self) -> int:
        return hash((self.name, self.value, self.is_file))

    def __repr__(self) -> str:
        suffix = ", is_file=True" if self.is_file else ""
        return f"Field({self.name!r}, {self.value!r}{suffix})"


class EmptyBody:
    """No request body."""

    __slots__ = ()

    body_type = None

    def __eq__(self, other: object) -> bool:
        return isinstance(other, EmptyBody)

    def __hash__(self) -> int:
        return hash(EmptyBody)

    def __repr__(self) -> str:
        return "EmptyBody()"


class JSONBody:
    """Body serialised as a single JSON object."""

    __slots__ = ("fields", "raw_json_fields")

    body_type = JSON_BODY

    def __init__(
        self,
        fields: tuple[Field, ...] = (),
        raw_json_fields: tuple[Field, ...] = (),
    ) -> None:
        self.fields = tuple(fields)
        self.raw_json_fields = tuple(raw_json_fields)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, JSONBody):
            return NotImplemented
        return (self.fields, self.raw_json_fields) == (
            other.fields,
            other.raw_json_fields,
        )

    def __hash__(self) -> int:
        return hash((self.fields, self.raw_json_fields))

    def __repr__(self) -> str:
        return (
            f"JSONBody(fields={list(self.fields)!r}, "
            f"raw_json_fields={list(self.raw_json_fields)!r})"
        )


class FormBody:
    """Body serialised as a URL-encoded form, or multipart when files exist."""

    __slots__ = ("fields", "files")

    body_type = FORM_BODY

    def __init__(
        self,
        fields: tuple[Field, ...] = (),
        files: tuple[Field, ...] = (),
    ) -> None:
        self.fields = tuple(fields)
        self.files = tuple(files)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FormBody):
            return NotImplemented
        return (self.fields, self.files) == (other.fields, other.files)

    def __hash__(self) -> int:
        return hash((self.fields, self.files))

    def __repr__(self) -> str:
        return (
            f"FormBody(fields={list(self.fields)!r}, "
            f"files={list(self.files)!r})"
        )


class RawBody:
    """Body taken verbatim from standard input."""

    __slots__ = ("data",)

    body_type = RAW_BODY

    def __init__(self, data: bytes) -> None:
        self.data = data

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RawBody):
            return NotImplemented
        return self.data == other.data

    def __hash__(self) -> int:
        return hash(self.data)

    def __repr__(self) -> str:
        return f"RawBody(<{len(self.data)} bytes>)"


Body = EmptyBody | JSONBody | FormBody | RawBody


class RequestModel:
    """The parsed, canonical form of one invocation's request."""

    __slots__ = ("method", "url", "parameters", "header_fields", "body")

    def __init__(
        self,
        method: str,
        url: str,
        parameters: tuple[Field, ...] = (),
        header_fields: tuple[Field, ...] = (),
        body: Body | None = None,
    ) -> None:
        self.method = method
        self.url = url
        self.parameters = tuple(parameters)
        self.header_fields = tuple(header_fields)
        self.body = body if body is not None else EmptyBody()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RequestModel):
            return NotImplemented
        return (
            self.method == other.method
            and self.url == other.url
            and self.parameters == other.parameters
            and self.header_fields == other.header_fields
            and self.body == other.body
        )

    def __hash__(self) -> int:
        return hash(
            (self.method, self.url, self.parameters, self.header_fields, self.body)
        )

    def __repr__(self) -> str:
        return (
            f"RequestModel(method={self.method!r}, url={self.url!r}, "
            f"parameters=<{len(self.parameters)} parameters>, "
            f"headers=<{len(self.header_fields)} headers>, "
            f"body={self.body!r})"
        )


class RequestDraft:
    """Mutable state the parser fills in while walking request items."""

    __slots__ = (
        "method",
        "url",
        "parameters",
        "header_fields",
        "body_type",
        "body_fields",
        "raw_json_fields",
        "files",
        "raw",
    )

    def __init__(self, url: str = "", body_type: str | None = None) -> None:
        self.method: str | None = None
        self.url = url
        self.parameters: list[Field] = []
        self.header_fields: list[Field] = []
        self.body_type = body_type
        self.body_fields: list[Field] = []
        self.raw_json_fields: list[Field] = []
        self.files: list[Field] = []
        self.raw = b""

    def build_body(self) -> Body:
        """Return the body variant matching the draft's body type."""
        if self.body_type == JSON_BODY:
            return JSONBody(self.body_fields, self.raw_json_fields)
        if self.body_type == FORM_BODY:
            return FormBody(self.body_fields, self.files)
        if self.body_type == RAW_BODY:
            return RawBody(self.raw)
        return EmptyBody()

    def freeze(self) -> RequestModel:
        """Return the immutable RequestModel for this draft."""
        body = self.build_body()
        method = self.method
        if method is None:
            method = "GET" if isinstance(body, EmptyBody) else "POST"
        return RequestModel(
            method=method,
            url=self.url,
            parameters=tuple(self.parameters),
            header_fields=tuple(self.header_fields),
            body=body,
        )
