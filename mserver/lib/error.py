#!/usr/bin/env python
import logging
import os
from typing import Dict
from typing import List
from typing import Optional

from mserver import __version__

## Environmental variables prepended with "PYTHON_MSERVER" are used for debug purposes,
## environmental variables prepended with "POHODA_" are for connection parameters
debug_dump_communication = os.environ.get("PYTHON_MSERVER_COMMDUMP", False)
## one of DEBUG_PDB, DEBUG, DEVELOPMENT, PRODUCTION
debugmode = os.environ.get("PYTHON_MSERVER_DEBUGMODE")
if not debugmode:
    if "dev" in __version__:
        debugmode = "DEVELOPMENT"
    else:
        debugmode = "PRODUCTION"

log = logging.getLogger("mserver")
if debugmode.startswith("DEBUG"):
    log.setLevel(logging.DEBUG)
else:
    log.setLevel(logging.WARNING)


def weirdness(*reasons) -> None:
    from mserver.lib.debug import xmlstring

    reason = " : ".join([xmlstring(x) for x in reasons])
    log.warning(f"Deviation from expectations found: {reason}")
    if debugmode == "DEBUG_PDB":
        log.error(f"Dropping into debugger due to {reason}")
        import pdb

        pdb.set_trace()


def assert_(condition: object) -> None:
    try:
        assert condition
    except AssertionError:
        if debugmode == "PRODUCTION":
            log.error(
                "Deviation from expectations found.  %s" % ERR_FRAGMENT, exc_info=True
            )
        elif debugmode == "DEBUG_PDB":
            log.error("Deviation from expectations found.  Dropping into debugger")
            import pdb

            pdb.set_trace()
        else:
            raise


ERR_FRAGMENT: str = "Please consider raising an issue, include this error, the traceback (if any) and the mServer version you are talking to"


class MServerError(Exception):
    url: Optional[str] = None
    reason: str = "no reason"

    def __init__(self, url: Optional[str] = None, reason: Optional[str] = None) -> None:
        if url:
            self.url = url
        if reason:
            self.reason = reason

    def __str__(self) -> str:
        return "%s at '%s', reason %s" % (
            self.__class__.__name__,
            self.url,
            self.reason,
        )


class TransportError(MServerError):
    """
    The network, TLS or timeout layer failed before a usable HTTP
    status was received.
    """

    pass


class HttpStatusError(MServerError):
    """
    mServer answered with one of the well-known error statuses.  The
    status property holds the HTTP code.
    """

    status: int = 0

    def __init__(
        self, url: Optional[str] = None, reason: Optional[str] = None, status: int = 0
    ) -> None:
        super().__init__(url, reason)
        self.status = status


class ProtocolParseError(MServerError):
    """
    The response body is not well-formed XML or not a responsePack.
    """

    pass


class ApplicationError(MServerError):
    """
    mServer understood the request but refused it.  The messages
    property holds the interpreted message lines, grouped by severity.
    """

    messages: Dict[str, List] = {}

    def __init__(
        self,
        url: Optional[str] = None,
        reason: Optional[str] = None,
        messages: Optional[Dict[str, List]] = None,
    ) -> None:
        super().__init__(url, reason)
        self.messages = messages or {}


class DataPathError(MServerError):
    pass


class BuildError(MServerError):
    pass
