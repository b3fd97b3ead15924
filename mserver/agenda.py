#!/usr/bin/env python
"""
Schema knowledge about POHODA agendas.

mServer wants every record wrapped in an agenda element
(``adb:addressbook``, ``inv:invoice``, ...) holding a header section
and optionally some detail/summary sections.  Most fields live in the
agenda namespace, but some containers (``identity``, ``homeCurrency``,
reference types like ``paymentType``) switch their children to the
shared ``typ`` namespace.  This module knows just enough of that to
turn a plain mapping into elements and back again; it is not a
complete mirror of the XSD files.

A record given to :func:`encode_record` looks like::

    {
        "identity": {"address": {"company": "ACME s.r.o.", "ico": "12345678"}},
        "email": "info@acme.example",
        "maturity": 14,
    }

Keys may carry an explicit namespace prefix (``"typ:company"``) when
the defaults pick the wrong one.  Lists become repeated elements.
"""
from dataclasses import dataclass
from dataclasses import field
from datetime import date
from datetime import datetime
from decimal import Decimal
from typing import Any
from typing import Callable
from typing import Dict
from typing import List
from typing import Mapping
from typing import Optional
from typing import Tuple

from lxml.etree import _Element

from mserver.elements.base import Field
from mserver.lib import error
from mserver.lib.namespace import localname
from mserver.lib.namespace import ns
from mserver.lib.namespace import nsmap


@dataclass(frozen=True)
class Agenda:
    """
    Attributes:
        name: local name of the agenda element, also the local name of
              one item in a list response
        prefix: namespace prefix of the agenda
        header: the section plain record keys go into
        list_type: used to derive listXRequest / requestX element names
        list_prefix: namespace prefix of the list request
        sections: record keys that are siblings of the header
        repeated: element names always decoded as lists
        list_attributes: extra attributes for the list request element
        field_types: per agenda overrides of FIELD_TYPES
    """

    name: str
    prefix: str
    header: str
    list_type: str
    list_prefix: str = "lst"
    sections: Tuple[str, ...] = ()
    repeated: Tuple[str, ...] = ()
    list_attributes: Tuple[Tuple[str, str], ...] = ()
    field_types: Dict[str, Callable[[str], Any]] = field(default_factory=dict)

    def tag(self, name: Optional[str] = None) -> str:
        return ns(self.prefix, name or self.name)

    @property
    def list_request_tag(self) -> str:
        return ns(self.list_prefix, "list%sRequest" % self.list_type)

    @property
    def request_tag(self) -> str:
        return ns(self.list_prefix, "request%s" % self.list_type)

    @property
    def version_attribute(self) -> str:
        ## listAddressBookRequest carries addressBookVersion="2.0"
        return self.list_type[0].lower() + self.list_type[1:] + "Version"


## Containers in an agenda namespace whose children are in the typ namespace
TYPE_CONTAINERS = frozenset(
    (
        "identity",
        "partnerIdentity",
        "myIdentity",
        "number",
        "paymentType",
        "accounting",
        "classificationVAT",
        "classificationKVDPH",
        "centre",
        "activity",
        "contract",
        "homeCurrency",
        "foreignCurrency",
        "account",
        "paymentAccount",
        "priceLevel",
        "storage",
        "typePrice",
        "stockItem",
        "carrier",
        "region",
    )
)


def parse_bool(text: str) -> bool:
    return text.strip().lower() == "true"


def parse_date(text: str) -> date:
    return date.fromisoformat(text.strip()[:10])


def parse_datetime(text: str) -> datetime:
    return datetime.fromisoformat(text.strip())


FIELD_TYPES: Dict[str, Callable[[str], Any]] = {
    "id": int,
    "maturity": int,
    "agreement": int,
    "date": parse_date,
    "dateTax": parse_date,
    "dateAccounting": parse_date,
    "dateDue": parse_date,
    "dateDelivery": parse_date,
    "dateOrder": parse_date,
    "dateKHDPH": parse_date,
    "dateApplicationVAT": parse_date,
    "dateFrom": parse_date,
    "dateTill": parse_date,
    "lastChanges": parse_datetime,
    "quantity": float,
    "unitPrice": float,
    "price": float,
    "priceVAT": float,
    "priceSum": float,
    "priceNone": float,
    "priceLow": float,
    "priceLowVAT": float,
    "priceLowSum": float,
    "priceHigh": float,
    "priceHighVAT": float,
    "priceHighSum": float,
    "price3": float,
    "price3VAT": float,
    "price3Sum": float,
    "rate": float,
    "amount": float,
    "discountPercentage": float,
    "credit": float,
    "purchasingPrice": float,
    "sellingPrice": float,
    "mass": float,
    "volume": float,
    "coefficient": float,
    "payVAT": parse_bool,
    "markRecord": parse_bool,
    "isExecuted": parse_bool,
    "isDelivered": parse_bool,
    "isSales": parse_bool,
    "isInternet": parse_bool,
}


AGENDAS: Dict[str, Agenda] = {
    a.name.lower(): a
    for a in (
        Agenda(
            name="addressbook",
            prefix="adb",
            header="addressbookHeader",
            list_type="AddressBook",
            list_prefix="lAdb",
            repeated=("addressbookAccount",),
        ),
        Agenda(
            name="invoice",
            prefix="inv",
            header="invoiceHeader",
            list_type="Invoice",
            sections=("invoiceDetail", "invoiceSummary"),
            repeated=("invoiceItem", "invoiceAdvancePaymentItem"),
            list_attributes=(("invoiceType", "issuedInvoice"),),
        ),
        Agenda(
            name="stock",
            prefix="stk",
            header="stockHeader",
            list_type="Stock",
            list_prefix="lStk",
            sections=("stockDetail", "stockPriceItem"),
            repeated=("stockPrice",),
        ),
        Agenda(
            name="order",
            prefix="ord",
            header="orderHeader",
            list_type="Order",
            sections=("orderDetail", "orderSummary"),
            repeated=("orderItem",),
            list_attributes=(("orderType", "receivedOrder"),),
        ),
        Agenda(
            name="offer",
            prefix="ofr",
            header="offerHeader",
            list_type="Offer",
            sections=("offerDetail", "offerSummary"),
            repeated=("offerItem",),
            list_attributes=(("offerType", "issuedOffer"),),
        ),
        Agenda(
            name="enquiry",
            prefix="enq",
            header="enquiryHeader",
            list_type="Enquiry",
            sections=("enquiryDetail", "enquirySummary"),
            repeated=("enquiryItem",),
            list_attributes=(("enquiryType", "issuedEnquiry"),),
        ),
        Agenda(
            name="voucher",
            prefix="vch",
            header="voucherHeader",
            list_type="Voucher",
            sections=("voucherDetail", "voucherSummary"),
            repeated=("voucherItem",),
        ),
        Agenda(
            name="intDoc",
            prefix="int",
            header="intDocHeader",
            list_type="IntDoc",
            sections=("intDocDetail", "intDocSummary"),
            repeated=("intDocItem",),
        ),
        Agenda(
            name="bank",
            prefix="bnk",
            header="bankHeader",
            list_type="Bank",
            sections=("bankDetail", "bankSummary"),
            repeated=("bankItem",),
        ),
        Agenda(
            name="vyroba",
            prefix="vyr",
            header="vyrobaHeader",
            list_type="Vyroba",
            sections=("vyrobaDetail",),
            repeated=("vyrobaItem",),
        ),
    )
}


def get_agenda(name: Optional[str]) -> Agenda:
    if isinstance(name, Agenda):
        return name
    try:
        return AGENDAS[(name or "").lower()]
    except KeyError:
        raise error.BuildError(reason="unknown agenda %r" % name)


def encode_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    ## datetime is a subclass of date, check it first
    if isinstance(value, datetime):
        return value.isoformat(timespec="seconds")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return format(value, "f")
    return str(value)


def _split_key(key: str, default_prefix: str) -> Tuple[str, str]:
    if ":" in key:
        prefix, name = key.split(":", 1)
        if prefix not in nsmap:
            raise error.BuildError(reason="unknown namespace prefix in %r" % key)
        return prefix, name
    return default_prefix, key


def encode_fields(record: Mapping[str, Any], prefix: str) -> List[Field]:
    """
    Converts a mapping into a list of elements in the given namespace.
    Nested mappings become nested elements, lists become repeated
    elements and None values are left out.
    """
    if not isinstance(record, Mapping):
        raise error.BuildError(
            reason="expected a mapping, got %s" % type(record).__name__
        )
    elements: List[Field] = []
    for key, value in record.items():
        if value is None:
            continue
        field_prefix, name = _split_key(key, prefix)
        values = value if isinstance(value, (list, tuple)) else [value]
        for item in values:
            elements.append(_encode_field(field_prefix, name, item))
    return elements


def _encode_field(prefix: str, name: str, value: Any) -> Field:
    element = Field(ns(prefix, name))
    if isinstance(value, Mapping):
        if prefix == "typ" or name in TYPE_CONTAINERS:
            child_prefix = "typ"
        else:
            child_prefix = prefix
        element += encode_fields(value, child_prefix)
    else:
        element.value = encode_value(value)
    return element


def encode_record(agenda: Agenda, record: Mapping[str, Any]) -> List[Field]:
    """
    Returns the children of the agenda element: the header section
    holding all plain keys, followed by the named sections.
    """
    if not isinstance(record, Mapping):
        raise error.BuildError(
            reason="expected a mapping, got %s" % type(record).__name__
        )
    header_data = {k: v for k, v in record.items() if k not in agenda.sections}
    children: List[Field] = []
    if header_data:
        header = Field(agenda.tag(agenda.header))
        header += encode_fields(header_data, agenda.prefix)
        children.append(header)
    for section in agenda.sections:
        if record.get(section) is not None:
            children.extend(encode_fields({section: record[section]}, agenda.prefix))
    return children


def decode_value(name: str, text: Optional[str], agenda: Optional[Agenda] = None) -> Any:
    if text is None:
        return None
    converter = None
    if agenda is not None:
        converter = agenda.field_types.get(name)
    if converter is None:
        converter = FIELD_TYPES.get(name)
    if converter is None:
        return text
    try:
        return converter(text)
    except ValueError:
        error.weirdness("field %s has unexpected content %r" % (name, text))
        return text


def decode_fields(element: _Element, agenda: Optional[Agenda] = None) -> Dict[str, Any]:
    record: Dict[str, Any] = {}
    repeated = agenda.repeated if agenda else ()
    for child in element:
        if not isinstance(child.tag, str):
            ## comments and processing instructions
            continue
        name = localname(child.tag)
        if len(child):
            value = decode_fields(child, agenda)
        else:
            value = decode_value(name, child.text, agenda)
        if name in record:
            if not isinstance(record[name], list):
                record[name] = [record[name]]
            record[name].append(value)
        elif name in repeated:
            record[name] = [value]
        else:
            record[name] = value
    return record


def decode_record(agenda: Agenda, element: _Element) -> Dict[str, Any]:
    """
    Reverse of encode_record: the header is flattened into the record,
    other sections are kept under their own names.
    """
    record: Dict[str, Any] = {}
    for name, value in decode_fields(element, agenda).items():
        if name == "actionType":
            continue
        if name == agenda.header and isinstance(value, dict):
            record.update(value)
        else:
            record[name] = value
    return record
