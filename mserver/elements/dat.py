#!/usr/bin/env python
from typing import ClassVar

from .base import VersionedElement
from mserver.lib.namespace import ns


# Envelope
class DataPack(VersionedElement):
    tag: ClassVar[str] = ns("dat", "dataPack")


class DataPackItem(VersionedElement):
    tag: ClassVar[str] = ns("dat", "dataPackItem")
