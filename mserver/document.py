"""
Building the XML sent to mServer.

A :class:`Document` is one agenda record plus an optional action
marker, a :class:`ListRequest` asks for records of one agenda, and the
:class:`Envelope` (``dat:dataPack``) wraps any number of them into one
transmission::

    envelope = Envelope(ico="12345678")
    document = build_document("addressbook", {"identity": {...}})
    document.mark_action("update", {"id": 42})
    envelope.add_document(2, document)
    body = envelope.serialize()

Nothing in here does any I/O.
"""
from datetime import datetime
from typing import Any
from typing import Dict
from typing import List
from typing import Mapping
from typing import Optional
from typing import Tuple
from typing import Union

from lxml import etree
from lxml.etree import _Element

from mserver import __version__
from mserver.agenda import Agenda
from mserver.agenda import decode_record
from mserver.agenda import encode_fields
from mserver.agenda import encode_record
from mserver.agenda import get_agenda
from mserver.config import DEFAULT_APPLICATION
from mserver.elements.base import Field
from mserver.elements.dat import DataPack
from mserver.elements.dat import DataPackItem
from mserver.elements.ftr import Filter
from mserver.lib import error
from mserver.lib.namespace import localname
from mserver.lib.namespace import nsmap

## "add/update" is sent as <add update="true">
ACTIONS = ("add", "add/update", "update", "delete")


def _filter_element(conditions: Mapping[str, Any]) -> Filter:
    return Filter() + encode_fields(conditions, "ftr")


class Document:
    """
    One agenda record, ready to be put into an Envelope.

    The record is converted when the document is built, so a record
    that cannot be mapped fails early with a BuildError.
    """

    def __init__(self, agenda: Union[str, Agenda], record: Mapping[str, Any]) -> None:
        self.agenda = get_agenda(agenda)
        self._children = encode_record(self.agenda, record)
        self.record = dict(record)
        self.action: Optional[str] = None
        self.filter: Optional[Dict[str, Any]] = None

    def __repr__(self) -> str:
        return "Document(%s, action=%s, filter=%s)" % (
            self.agenda.name,
            self.action,
            self.filter,
        )

    def mark_action(
        self, kind: str, filter: Optional[Mapping[str, Any]] = None
    ) -> "Document":
        if kind not in ACTIONS:
            raise error.BuildError(reason="unknown action %r" % kind)
        if kind in ("update", "delete") and not filter:
            raise error.BuildError(reason="%s needs a filter" % kind)
        self.action = kind
        self.filter = dict(filter) if filter else None
        return self

    def _action_element(self) -> Field:
        if self.action == "add/update":
            marker = Field(self.agenda.tag("add"), attributes={"update": "true"})
        else:
            marker = Field(self.agenda.tag(self.action))
        if self.filter:
            marker += _filter_element(self.filter)
        return Field(self.agenda.tag("actionType")) + marker

    def xmlelement(self) -> _Element:
        root = Field(self.agenda.tag(), attributes={"version": "2.0"})
        if self.action:
            root += self._action_element()
        root += self._children
        return root.xmlelement()


class ListRequest:
    """
    Asks mServer for the records of one agenda, optionally narrowed
    down by a filter.  Carries no action marker.
    """

    action = None

    def __init__(self, agenda: Union[str, Agenda]) -> None:
        self.agenda = get_agenda(agenda)
        self.filter: Optional[Dict[str, Any]] = None

    def __repr__(self) -> str:
        return "ListRequest(%s, filter=%s)" % (self.agenda.name, self.filter)

    def add_filter(self, conditions: Mapping[str, Any]) -> "ListRequest":
        self.filter = dict(conditions)
        return self

    def xmlelement(self) -> _Element:
        attributes = {
            "version": "2.0",
            self.agenda.version_attribute: "2.0",
        }
        attributes.update(dict(self.agenda.list_attributes))
        request = Field(self.agenda.request_tag)
        if self.filter:
            request += _filter_element(self.filter)
        root = Field(self.agenda.list_request_tag, attributes=attributes) + request
        return root.xmlelement()


class Envelope:
    """
    The dataPack wrapping everything sent in one request.  The pack id
    is the generation timestamp.
    """

    def __init__(
        self,
        ico: Optional[str] = None,
        application: Optional[str] = None,
        note: Optional[str] = None,
    ) -> None:
        self.ico = ico
        self.application = application or DEFAULT_APPLICATION
        self.note = note or "generated by python-mserver " + __version__
        self.created = datetime.now()
        self.id = self.created.strftime("%Y%m%d%H%M%S%f")
        self.items: List[Tuple[str, Union[Document, ListRequest]]] = []

    def __len__(self) -> int:
        return len(self.items)

    def add_document(self, slot: Any, document: Union[Document, ListRequest]) -> None:
        self.items.append((str(slot), document))

    def xmlelement(self) -> _Element:
        attributes = {
            "id": self.id,
            "application": self.application,
            "note": self.note,
        }
        if self.ico:
            attributes["ico"] = str(self.ico)
        pack = DataPack(attributes=attributes)
        for slot, document in self.items:
            pack += DataPackItem(attributes={"id": slot}) + document
        root = pack.xmlelement()
        etree.cleanup_namespaces(root, top_nsmap=nsmap)
        return root

    def serialize(self) -> bytes:
        return etree.tostring(
            self.xmlelement(), encoding="utf-8", xml_declaration=True, pretty_print=True
        )


def build_document(agenda: Union[str, Agenda], record: Mapping[str, Any]) -> Document:
    return Document(agenda, record)


def build_list_request(
    agenda: Union[str, Agenda], conditions: Optional[Mapping[str, Any]] = None
) -> ListRequest:
    request = ListRequest(agenda)
    if conditions:
        request.add_filter(conditions)
    return request


def parse_data_pack(body: bytes, agenda: Union[str, Agenda]) -> List[Dict[str, Any]]:
    """
    Decodes the records of a previously saved dataPack, i.e. one
    written by Envelope.serialize().
    """
    agenda = get_agenda(agenda)
    try:
        root = etree.fromstring(body)
    except etree.XMLSyntaxError as e:
        raise error.ProtocolParseError(reason=str(e))
    if root.tag != DataPack.tag:
        raise error.ProtocolParseError(
            reason="expected a dataPack, got %s" % localname(root.tag)
        )
    return [
        decode_record(agenda, element)
        for item in root.iterfind(DataPackItem.tag)
        for element in item
        if element.tag == agenda.tag()
    ]
