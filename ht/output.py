"""Printing requests and responses, and downloading response bodies."""

from __future__ import annotations

import json
import logging
import os
import re
from typing import TextIO
from urllib.parse import urlsplit

import requests

from ht.builder import WireRequest

logger = logging.getLogger(__name__)

HTTP_VERSIONS = {10: "HTTP/1.0", 11: "HTTP/1.1", 20: "HTTP/2"}

RE_INDEX_SUFFIX = re.compile(r"\.(\d+)$")

DOWNLOAD_CHUNK_SIZE = 64 * 1024
DEFAULT_DOWNLOAD_NAME = "index"


class OutputOptions:
    """What to print and how."""

    __slots__ = (
        "print_request_header",
        "print_request_body",
        "print_response_header",
        "print_response_body",
        "enable_format",
        "download",
        "output_file",
        "overwrite",
    )

    def __init__(
        self,
        print_request_header: bool = False,
        print_request_body: bool = False,
        print_response_header: bool = False,
        print_response_body: bool = False,
        enable_format: bool = False,
        download: bool = False,
        output_file: str | None = None,
        overwrite: bool = False,
    ) -> None:
        self.print_request_header = print_request_header
        self.print_request_body = print_request_body
        self.print_response_header = print_response_header
        self.print_response_body = print_response_body
        self.enable_format = enable_format
        self.download = download
        self.output_file = output_file
        self.overwrite = overwrite

    def __repr__(self) -> str:
        flags = "".join(
            c
            for c, on in (
                ("H", self.print_request_header),
                ("B", self.print_request_body),
                ("h", self.print_response_header),
                ("b", self.print_response_body),
            )
            if on
        )
        return (
            f"OutputOptions(print={flags!r}, format={self.enable_format!r}, "
            f"download={self.download!r})"
        )


def is_json(content_type: str | None) -> bool:
    if not content_type:
        return False
    return content_type.split(";", 1)[0].strip().lower() == "application/json"


def http_version(response: requests.Response) -> str:
    version = getattr(response.raw, "version", None)
    return HTTP_VERSIONS.get(version, "HTTP/1.1")


def request_target(url: str) -> str:
    parts = urlsplit(url)
    target = parts.path or "/"
    if parts.query:
        target += "?" + parts.query
    return target


def request_headers(wire: WireRequest) -> list[tuple[str, str]]:
    """Return the request headers as sent, with Host first."""
    host = wire.header("Host") or urlsplit(wire.url).netloc
    rest = [pair for pair in wire.headers if pair[0].lower() != "host"]
    return [("Host", host)] + rest


class PlainPrinter:
    """Writes the exchange verbatim."""

    def __init__(self, writer: TextIO) -> None:
        self.writer = writer

    def print_request_line(self, wire: WireRequest) -> None:
        self.writer.write(
            f"{wire.method} {request_target(wire.url)} HTTP/1.1\n"
        )

    def print_status_line(self, response: requests.Response) -> None:
        self.writer.write(
            f"{http_version(response)} {response.status_code} {response.reason}\n"
        )

    def print_headers(self, headers: list[tuple[str, str]]) -> None:
        for name, value in headers:
            self.writer.write(f"{name}: {value}\n")
        self.writer.write("\n")

    def print_body(self, body: bytes | None, content_type: str | None) -> None:
        if body:
            self.writer.write(body.decode("utf-8", errors="replace"))

    def print_download(self, length: int | None, filename: str) -> None:
        size = format_byte_size(length) if length is not None else "unknown size"
        self.writer.write(f'Downloading {size} to "{filename}"\n')


class PrettyPrinter(PlainPrinter):
    """Re-indents JSON bodies and sorts response headers by name."""

    indent_width = 4

    def print_headers(self, headers: list[tuple[str, str]]) -> None:
        super().print_headers(sorted(headers, key=lambda pair: pair[0].lower()))

    def print_body(self, body: bytes | None, content_type: str | None) -> None:
        if not body or not is_json(content_type):
            super().print_body(body, content_type)
            return
        try:
            obj = json.loads(body)
        except ValueError:
            logger.debug("Body is not valid JSON; printing it verbatim")
            super().print_body(body, content_type)
            return
        self.writer.write(
            json.dumps(obj, indent=self.indent_width, ensure_ascii=False)
        )
        self.writer.write("\n")


def new_printer(writer: TextIO, options: OutputOptions) -> PlainPrinter:
    if options.enable_format:
        return PrettyPrinter(writer)
    return PlainPrinter(writer)


def format_byte_size(n: int) -> str:
    """Format ``n`` bytes as e.g. ``512B``, ``1.5K`` or ``2M``."""
    size = float(n)
    for unit in ("B", "K", "M", "G", "T"):
        if size < 1024 or unit == "T":
            break
        size /= 1024
    if unit == "B":
        return f"{n}B"
    text = f"{size:.1f}"
    if text.endswith(".0"):
        text = text[:-2]
    return text + unit


def make_non_overlapping_filename(path: str) -> str:
    """Return ``path`` or, if taken, the first free ``path.N`` variant.

    A path that already ends in ``.N`` has N incremented instead.
    """
    while os.path.exists(path):
        match = RE_INDEX_SUFFIX.search(path)
        if match:
            path = f"{path[:match.start()]}.{int(match.group(1)) + 1}"
        else:
            path = f"{path}.1"
    return path


class FileWriter:
    """Downloads a response body to a local file."""

    __slots__ = ("full_path",)

    def __init__(self, url: str, options: OutputOptions) -> None:
        if options.output_file:
            full_path = options.output_file
        else:
            name = os.path.basename(urlsplit(url).path) or DEFAULT_DOWNLOAD_NAME
            full_path = os.path.join(".", name)
        if not options.overwrite:
            full_path = make_non_overlapping_filename(full_path)
        self.full_path = full_path

    @property
    def filename(self) -> str:
        return os.path.basename(self.full_path)

    def download(self, response: requests.Response) -> int:
        """Stream the response body to disk and return the bytes written."""
        written = 0
        with open(self.full_path, "wb") as fh:
            for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                fh.write(chunk)
                written += len(chunk)
        logger.debug("Wrote %d bytes to %s", written, self.full_path)
        return written
