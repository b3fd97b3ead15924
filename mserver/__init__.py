#!/usr/bin/env python
import logging

__version__ = "0.3.0"

from .client import Client
from .client import get_client

## Silence notification of no default logging handler
log = logging.getLogger("mserver")


class NullHandler(logging.Handler):
    def emit(self, record) -> None:
        pass


log.addHandler(NullHandler())

__all__ = ["__version__", "Client", "get_client"]
