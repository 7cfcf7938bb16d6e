"""Sending a built request over HTTP with requests."""

from __future__ import annotations

import logging

import requests
import urllib3

from ht.builder import WireRequest

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class ExchangeOptions:
    """Transport-level settings taken from the command line."""

    __slots__ = (
        "timeout",
        "follow_redirects",
        "verify",
        "auth",
        "check_status",
    )

    def __init__(
        self,
        timeout: float | None = DEFAULT_TIMEOUT,
        follow_redirects: bool = False,
        verify: bool = True,
        auth: tuple[str, str] | None = None,
        check_status: bool = False,
    ) -> None:
        self.timeout = timeout
        self.follow_redirects = follow_redirects
        self.verify = verify
        self.auth = auth
        self.check_status = check_status

    def __repr__(self) -> str:
        return (
            f"ExchangeOptions(timeout={self.timeout!r}, "
            f"follow_redirects={self.follow_redirects!r}, "
            f"verify={self.verify!r}, "
            f"auth={'<set>' if self.auth else None}, "
            f"check_status={self.check_status!r})"
        )


def fold_headers(headers: list[tuple[str, str]]) -> dict[str, str | bytes]:
    """Fold repeated header names into one comma-separated value.

    The first spelling of each name is kept. Values that latin-1 cannot
    represent are passed on as UTF-8 bytes.
    """
    folded: dict[str, str] = {}
    spelling: dict[str, str] = {}
    for name, value in headers:
        key = name.lower()
        if key in spelling:
            folded[spelling[key]] += ", " + value
        else:
            spelling[key] = name
            folded[name] = value
    return {name: encode_header_value(value) for name, value in folded.items()}


def encode_header_value(value: str) -> str | bytes:
    # http.client encodes str header values as latin-1.
    try:
        value.encode("latin-1")
    except UnicodeEncodeError:
        return value.encode("utf-8")
    return value


def send_request(
    wire: WireRequest,
    options: ExchangeOptions,
    session: requests.Session | None = None,
    stream: bool = False,
) -> requests.Response:
    """Send ``wire`` and return the response.

    Args:
        wire: The built request.
        options: Transport settings.
        session: Session to send with; a fresh one is used when omitted.
        stream: Leave the body unread, e.g. for downloads.

    Raises:
        requests.RequestException: On connection, TLS or timeout failures.
    """
    if not options.verify:
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    if session is None:
        session = requests.Session()

    logger.debug("Sending %s %s", wire.method, wire.url)
    response = session.request(
        method=wire.method,
        url=wire.url,
        headers=fold_headers(wire.headers),
        data=wire.body,
        timeout=options.timeout,
        verify=options.verify,
        allow_redirects=options.follow_redirects,
        stream=stream,
    )
    logger.debug("Received HTTP %s from %s", response.status_code, response.url)
    return response


def exit_status(status_code: int) -> int:
    """Map an HTTP status to the ``--check-status`` exit code.

    3xx, 4xx and 5xx give 3, 4 and 5; anything else gives 0.
    """
    if 300 <= status_code < 600:
        return status_code // 100
    return 0
