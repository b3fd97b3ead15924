#!/usr/bin/env python
"""
Elements found in mServer answers.  The client only reads them, the
test suite builds answers out of them.
"""
from typing import ClassVar

from .base import BaseElement
from .base import ValuedBaseElement
from mserver.lib.namespace import ns


# Envelope
class ResponsePack(BaseElement):
    tag: ClassVar[str] = ns("rsp", "responsePack")


class ResponsePackItem(BaseElement):
    tag: ClassVar[str] = ns("rsp", "responsePackItem")


# Import results
class ImportDetails(BaseElement):
    tag: ClassVar[str] = ns("rdc", "importDetails")


class Detail(BaseElement):
    tag: ClassVar[str] = ns("rdc", "detail")


class ProducedDetails(BaseElement):
    tag: ClassVar[str] = ns("rdc", "producedDetails")


class State(ValuedBaseElement):
    tag: ClassVar[str] = ns("rdc", "state")


class Errno(ValuedBaseElement):
    tag: ClassVar[str] = ns("rdc", "errno")


class Note(ValuedBaseElement):
    tag: ClassVar[str] = ns("rdc", "note")


class XPath(ValuedBaseElement):
    tag: ClassVar[str] = ns("rdc", "XPath")
