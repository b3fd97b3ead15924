"""
Turns HTTP statuses and interpreted responses into status lines.

Every line is logged through the ``mserver`` logger at the level of its
severity, and kept in ``StatusReporter.messages`` so a caller can show
them after the fact.  The fixed HTTP status lines are translated
through the ``mserver`` gettext domain.
"""
import logging
from gettext import dgettext
from typing import List
from typing import Optional
from typing import Tuple

from mserver.lib.error import log
from mserver.response import MServerResponse

## gettext domain of the status lines.  Catalogs are looked up where
## gettext.bindtextdomain() points it, by default in sys.prefix/share/locale.
TEXT_DOMAIN = "mserver"

## Statuses mServer is documented to answer with.  The body of such an
## answer is never interpreted.
HTTP_ERRORS = {
    ## The request is syntactically wrong
    400: "400: Bad request",
    ## Credentials missing, or the user does not exist in POHODA
    401: "401: Unauthorized",
    ## The user may not open the accounting unit
    403: "403: Forbidden",
    ## Wrong path to mServer, usually a missing /xml
    404: "404: Not found",
    405: "405: Method not allowed",
    408: "408: Request Timeout",
    500: "500: Internal server error",
    502: "502: Bad Gateway",
    503: "503: Service unavailable",
    504: "504: Gateway Timeout",
    505: "505: HTTP Version Not Supported",
}

LEVELS = {
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


def _(message: str) -> str:
    return dgettext(TEXT_DOMAIN, message)


class StatusReporter:
    def __init__(self) -> None:
        self.messages: List[Tuple[str, str]] = []

    def add_status_message(self, message: str, severity: str = "info") -> None:
        self.messages.append((severity, message))
        log.log(LEVELS.get(severity, logging.INFO), message)

    def clear(self) -> None:
        self.messages = []

    def errors(self) -> List[str]:
        return [message for severity, message in self.messages if severity == "error"]

    def report(
        self, status: int, response: Optional[MServerResponse] = None
    ) -> Optional[str]:
        """
        Logs what happened to one request.  For the well-known error
        statuses the fixed line is returned, for everything else the
        interpreted response is logged line by line and None returned.
        """
        if status in HTTP_ERRORS:
            line = _(HTTP_ERRORS[status])
            self.add_status_message(line, "error")
            return line
        if response is None:
            return None
        if response.note:
            self.add_status_message(response.note, "info" if response.ok else "error")
        for severity, messages in response.messages.items():
            for message in messages:
                self.add_status_message(str(message), severity)
        return None
