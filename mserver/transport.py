#!/usr/bin/env python
"""
The ``Transport`` class does the HTTP work: it owns a reusable
``requests.Session`` configured from a :class:`ConnectionConfig`, and
turns one method+url+body exchange into a :class:`RawResponse`.

It never raises on network trouble and never retries - a failing
connection comes back as a RawResponse with status 0 and the error
message set, and it is up to the caller to decide what to do with it.
"""
import logging
import re
import time
from dataclasses import dataclass
from dataclasses import field
from datetime import datetime
from tempfile import NamedTemporaryFile
from typing import Any
from typing import Mapping
from typing import Optional
from typing import Union

import requests
from requests.structures import CaseInsensitiveDict

from mserver.config import ConnectionConfig
from mserver.lib import error
from mserver.lib.error import log
from mserver.lib.python_utilities import to_normal_str
from mserver.lib.python_utilities import to_wire
from mserver.lib.url import URL
from mserver.requests import HTTPSTWAuth

CHARSET = re.compile(r"""charset\s*=\s*["']?([A-Za-z0-9._-]+)""", re.IGNORECASE)


@dataclass
class RawResponse:
    """
    What came back from one exchange.  status is 0 when no HTTP
    status was received, in which case error tells why.  skipped is
    set when the transport is offline and nothing was sent at all.
    """

    status: int = 0
    body: bytes = b""
    url: str = ""
    duration: float = 0.0
    when: Optional[datetime] = None
    error: str = ""
    skipped: bool = False
    headers: Mapping[str, str] = field(default_factory=dict)
    encoding: Optional[str] = None

    @property
    def text(self) -> str:
        """
        The body as a string.  An XML declaration beats the charset
        of the Content-Type header, bytes that do not decode are
        replaced.
        """
        return to_normal_str(self.body, self.encoding) or ""


def charset(headers: Mapping[str, str]) -> Optional[str]:
    """
    The charset parameter of the Content-Type header, if given
    """
    match = CHARSET.search(headers.get("Content-Type") or "")
    return match.group(1) if match else None


class Transport:
    """
    Not thread safe - use one Transport per thread.
    """

    url: Optional[URL] = None

    def __init__(self, config: ConnectionConfig) -> None:
        self.session = requests.Session()
        self.configure(config)

    def configure(self, config: ConnectionConfig) -> None:
        """
        (Re)reads headers and credentials from config.  The session,
        and with it any open connection, is kept.
        """
        self.config = config
        self.url = URL.objectify(config.url) if config.url else None
        self.headers = CaseInsensitiveDict(config.http_headers())
        if config.username or config.password:
            self.auth: Optional[HTTPSTWAuth] = HTTPSTWAuth(
                config.username, config.password
            )
        else:
            self.auth = None
        log.debug("transport configured for %s" % self.url)

    def close(self) -> None:
        self.session.close()

    def send(
        self,
        url: Union[URL, str] = "",
        method: str = "POST",
        body: Union[str, bytes, None] = b"",
        headers: Optional[Mapping[str, str]] = None,
    ) -> RawResponse:
        combined_headers = self.headers.copy()
        combined_headers.update(headers or {})
        if not body and "Content-Type" in combined_headers:
            del combined_headers["Content-Type"]

        if self.url is not None:
            url_obj = self.url.join(url)
        else:
            url_obj = URL.objectify(url)

        if self.config.offline:
            log.debug("offline - %s %s was not sent" % (method, url_obj))
            return RawResponse(url=str(url_obj or ""), skipped=True, when=datetime.now())

        if not url_obj or not url_obj.is_absolute():
            return RawResponse(
                url=str(url_obj or ""),
                error="no mServer url configured",
                when=datetime.now(),
            )

        if log.isEnabledFor(logging.DEBUG):
            log.debug(
                "sending request - method=%s, url=%s, headers=%s\nbody:\n%s",
                method,
                url_obj,
                combined_headers,
                to_normal_str(body),
            )

        started = time.monotonic()
        try:
            r = self.session.request(
                method.upper(),
                str(url_obj),
                data=to_wire(body) or None,
                headers=combined_headers,
                auth=self.auth,
                timeout=self.config.timeout,
                verify=self.config.ssl_verify_cert,
            )
        except requests.RequestException as e:
            log.debug("request failed: %r" % e)
            response = RawResponse(
                url=str(url_obj),
                duration=time.monotonic() - started,
                when=datetime.now(),
                error=str(e) or e.__class__.__name__,
            )
        else:
            log.debug("server responded with %i %s" % (r.status_code, r.reason))
            response = RawResponse(
                status=r.status_code,
                body=r.content or b"",
                url=r.url or str(url_obj),
                duration=time.monotonic() - started,
                when=datetime.now(),
                headers=r.headers,
                encoding=charset(r.headers),
            )

        if error.debug_dump_communication or self.config.debug:
            self.dump_communication(method, url_obj, combined_headers, body, response)

        return response

    def dump_communication(
        self,
        method: str,
        url: Any,
        headers: Mapping[str, str],
        body: Union[str, bytes, None],
        response: RawResponse,
    ) -> str:
        with NamedTemporaryFile(
            prefix="mservercomm", suffix=".txt", delete=False
        ) as commlog:
            commlog.write(b"=" * 80 + b"\n")
            commlog.write(f"{datetime.now():%FT%H:%M:%S}".encode("utf-8"))
            commlog.write(b"\n====>\n")
            commlog.write(f"{method} {url}\n".encode("utf-8"))
            commlog.write(
                b"\n".join(
                    to_wire(f"{x}: {headers[x]}")
                    for x in headers
                    if x.lower() != "stw-authorization"
                )
            )
            commlog.write(b"\n\n")
            commlog.write(to_wire(body) or b"")
            commlog.write(b"\n<====\n")
            commlog.write(f"{response.status} {response.error}\n".encode("utf-8"))
            commlog.write(
                b"\n".join(
                    to_wire(f"{x}: {response.headers[x]}") for x in response.headers
                )
            )
            commlog.write(b"\n\n")
            commlog.write(response.body)
            commlog.write(b"\n")
        log.debug("communication dumped to %s" % commlog.name)
        return commlog.name
