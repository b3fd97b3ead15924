"""
Parsing of mServer answers.

mServer answers every dataPack with a responsePack::

    <rsp:responsePack state="ok" note="...">
      <rsp:responsePackItem id="2" state="error">
        <adb:addressbookResponse state="error">
          <rdc:importDetails>
            <rdc:detail>
              <rdc:state>error</rdc:state>
              <rdc:errno>103</rdc:errno>
              <rdc:note>Duplicate record</rdc:note>
              <rdc:XPath>/dat:dataPack/dat:dataPackItem[1]</rdc:XPath>
            </rdc:detail>
          </rdc:importDetails>
        </adb:addressbookResponse>
      </rsp:responsePackItem>
    </rsp:responsePack>

The state attributes decide whether the request succeeded; the detail
blocks are informational and never change that verdict.
"""
import logging
from dataclasses import dataclass
from typing import Any
from typing import Dict
from typing import List
from typing import Optional
from typing import Union

from lxml import etree
from lxml.etree import _Element

from mserver.agenda import Agenda
from mserver.agenda import decode_fields
from mserver.agenda import decode_record
from mserver.agenda import get_agenda
from mserver.elements.rsp import Detail
from mserver.elements.rsp import Errno
from mserver.elements.rsp import ImportDetails
from mserver.elements.rsp import Note
from mserver.elements.rsp import ProducedDetails
from mserver.elements.rsp import ResponsePack
from mserver.elements.rsp import ResponsePackItem
from mserver.elements.rsp import State
from mserver.elements.rsp import XPath
from mserver.lib import error
from mserver.lib.namespace import localname
from mserver.lib.python_utilities import to_normal_str
from mserver.lib.python_utilities import to_wire

log = logging.getLogger(__name__)

## Message types, most severe first
SEVERITIES = ("error", "warning", "info", "debug")

## rdc:state values to message types
STATE_SEVERITY = {
    "error": "error",
    "warning": "warning",
    "ok": "info",
    "info": "info",
    "debug": "debug",
}


@dataclass
class Message:
    state: str
    errno: Optional[str] = None
    note: Optional[str] = None
    xpath: Optional[str] = None

    @property
    def severity(self) -> str:
        return STATE_SEVERITY.get(self.state, "info")

    def __str__(self) -> str:
        if self.errno is not None:
            line = "%s %s: %s" % (self.state, self.errno, self.note or "")
        else:
            line = "%s: %s" % (self.state, self.note or "")
        if self.xpath:
            line += " (%s)" % self.xpath
        return line


class MServerResponse:
    """
    An interpreted responsePack.  Construction fails with
    ProtocolParseError if the body is not a responsePack at all.
    """

    tree: Optional[_Element] = None
    state: Optional[str] = None
    note: Optional[str] = None

    def __init__(self, body: Union[str, bytes, None], huge_tree: bool = False) -> None:
        self._raw = body
        self.item_states: List[str] = []
        self.produced_details: List[Dict[str, Any]] = []
        self._messages: Dict[str, List[Message]] = {}

        if not body:
            raise error.ProtocolParseError(reason="empty response")
        try:
            self.tree = etree.XML(
                to_wire(body),
                parser=etree.XMLParser(remove_blank_text=True, huge_tree=huge_tree),
            )
        except etree.XMLSyntaxError as e:
            log.info(
                "Expected some valid XML from the server, but got this: \n"
                + str(body),
                exc_info=True,
            )
            raise error.ProtocolParseError(reason=str(e)) from e

        if self.tree.tag != ResponsePack.tag:
            raise error.ProtocolParseError(
                reason="expected a responsePack, got %s" % localname(str(self.tree.tag))
            )
        if log.isEnabledFor(logging.DEBUG):
            log.debug(etree.tostring(self.tree, pretty_print=True))

        self.state = self.tree.get("state")
        self.note = self.tree.get("note") or None
        self._parse_items()

    @property
    def raw(self) -> str:
        return to_normal_str(self._raw)

    @property
    def ok(self) -> bool:
        """
        Derived from the state attributes of the pack, its items and
        the agenda answers inside them.  Detail messages do not count,
        even when some of them are errors.
        """
        if self.state is None or self.state == "error":
            return False
        return "error" not in self.item_states

    @property
    def messages(self) -> Dict[str, List[Message]]:
        ordered = {s: self._messages[s] for s in SEVERITIES if s in self._messages}
        for severity in self._messages:
            ordered.setdefault(severity, self._messages[severity])
        return ordered

    def _add_message(self, message: Message) -> None:
        self._messages.setdefault(message.severity, []).append(message)

    def _parse_items(self) -> None:
        for item in self.tree:
            if not isinstance(item.tag, str):
                continue
            if item.tag != ResponsePackItem.tag:
                error.weirdness("unexpected element in responsePack", item)
                continue
            self._parse_state(item)
            for answer in item:
                if isinstance(answer.tag, str) and answer.get("state"):
                    self._parse_state(answer)
            for details in item.iter(ImportDetails.tag):
                for detail in details.iterfind(Detail.tag):
                    self._add_message(self._parse_detail(detail))
            for produced in item.iter(ProducedDetails.tag):
                ## nothing is produced by a refused item
                error.assert_(item.get("state") != "error")
                self.produced_details.append(decode_fields(produced))

    def _parse_state(self, element: _Element) -> None:
        state = element.get("state")
        if state:
            self.item_states.append(state)
        if element.get("note"):
            self._add_message(Message(state=state or "error", note=element.get("note")))

    def _parse_detail(self, detail: _Element) -> Message:
        state = detail.findtext(State.tag)
        if not state:
            error.weirdness("detail without state", detail)
        return Message(
            state=state or "error",
            errno=detail.findtext(Errno.tag),
            note=detail.findtext(Note.tag),
            xpath=detail.findtext(XPath.tag),
        )

    def get_agenda_data(self, agenda: Union[str, Agenda]) -> List[Dict[str, Any]]:
        """
        Decodes the records of a list response, i.e. the
        lAdb:addressbook elements inside lAdb:listAddressBook.
        """
        agenda = get_agenda(agenda)
        records = []
        for item in self.tree.iterfind(ResponsePackItem.tag):
            for listing in item:
                if not isinstance(listing.tag, str):
                    continue
                if not localname(listing.tag).startswith("list"):
                    continue
                for element in listing:
                    if isinstance(element.tag, str) and localname(element.tag) == agenda.name:
                        records.append(decode_record(agenda, element))
        return records


def interpret(body: Union[str, bytes, None], huge_tree: bool = False) -> MServerResponse:
    return MServerResponse(body, huge_tree=huge_tree)
