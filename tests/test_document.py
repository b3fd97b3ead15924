#!/usr/bin/env python
# -*- encoding: utf-8 -*-
from datetime import date
from datetime import datetime
from decimal import Decimal

import pytest
from lxml import etree

from mserver.agenda import encode_value
from mserver.agenda import get_agenda
from mserver.document import build_document
from mserver.document import build_list_request
from mserver.document import Envelope
from mserver.document import parse_data_pack
from mserver.lib import error
from mserver.lib.namespace import localname
from mserver.lib.namespace import ns
from mserver.lib.namespace import nsmap

invoice = {
    "invoiceType": "issuedInvoice",
    "date": date(2024, 1, 31),
    "text": "Consulting",
    "partnerIdentity": {"address": {"company": "ACME s.r.o.", "ico": "12345678"}},
    "invoiceDetail": {
        "invoiceItem": [
            {"text": "Hours", "quantity": 8.0, "homeCurrency": {"unitPrice": 1200.0}},
            {"text": "Travel", "quantity": 1.0, "homeCurrency": {"unitPrice": 450.5}},
        ]
    },
    "invoiceSummary": {"roundingDocument": "math2one"},
}


def children(element):
    return [localname(c.tag) for c in element if isinstance(c.tag, str)]


class TestAgenda:
    def testLookup(self):
        assert get_agenda("AddressBook").prefix == "adb"
        assert get_agenda("intdoc").name == "intDoc"
        with pytest.raises(error.BuildError):
            get_agenda("nonsense")
        with pytest.raises(error.BuildError):
            get_agenda(None)

    def testListTags(self):
        addressbook = get_agenda("addressbook")
        assert addressbook.list_request_tag == ns("lAdb", "listAddressBookRequest")
        assert addressbook.request_tag == ns("lAdb", "requestAddressBook")
        assert addressbook.version_attribute == "addressBookVersion"
        assert get_agenda("invoice").list_request_tag == ns("lst", "listInvoiceRequest")

    def testEncodeValue(self):
        assert encode_value(True) == "true"
        assert encode_value(False) == "false"
        assert encode_value(14) == "14"
        assert encode_value(date(2024, 1, 31)) == "2024-01-31"
        assert encode_value(datetime(2024, 1, 31, 12, 30)) == "2024-01-31T12:30:00"
        assert encode_value(Decimal("1.50")) == "1.50"


class TestDocument:
    def testSections(self):
        element = build_document("invoice", invoice).xmlelement()
        assert element.tag == ns("inv", "invoice")
        assert element.get("version") == "2.0"
        assert children(element) == ["invoiceHeader", "invoiceDetail", "invoiceSummary"]
        header = element.find(ns("inv", "invoiceHeader"))
        assert header.findtext(ns("inv", "date")) == "2024-01-31"
        ## identity containers switch to the typ namespace
        assert header.find(
            "%s/%s/%s" % (ns("inv", "partnerIdentity"), ns("typ", "address"), ns("typ", "ico"))
        ).text == "12345678"
        items = element.findall("%s/%s" % (ns("inv", "invoiceDetail"), ns("inv", "invoiceItem")))
        assert len(items) == 2
        assert items[1].findtext(
            "%s/%s" % (ns("inv", "homeCurrency"), ns("typ", "unitPrice"))
        ) == "450.5"

    def testNoneIsLeftOut(self):
        element = build_document("addressbook", {"email": None, "web": "acme.example"}).xmlelement()
        header = element.find(ns("adb", "addressbookHeader"))
        assert children(header) == ["web"]

    def testExplicitPrefix(self):
        element = build_document(
            "addressbook", {"identity": {"typ:address": {"typ:city": "Brno"}}}
        ).xmlelement()
        assert element.findtext(".//" + ns("typ", "city")) == "Brno"
        with pytest.raises(error.BuildError):
            build_document("addressbook", {"foo:bar": 1})

    def testUnmappableRecord(self):
        with pytest.raises(error.BuildError):
            build_document("addressbook", ["not", "a", "mapping"])

    def testActions(self):
        document = build_document("addressbook", {"email": "info@acme.example"})
        element = document.mark_action("add").xmlelement()
        assert children(element) == ["actionType", "addressbookHeader"]
        action = element.find(ns("adb", "actionType"))
        assert children(action) == ["add"]

        element = document.mark_action("add/update", {"ico": "12345678"}).xmlelement()
        add = element.find("%s/%s" % (ns("adb", "actionType"), ns("adb", "add")))
        assert add.get("update") == "true"
        assert add.findtext("%s/%s" % (ns("ftr", "filter"), ns("ftr", "ico"))) == "12345678"

        with pytest.raises(error.BuildError):
            document.mark_action("update")
        with pytest.raises(error.BuildError):
            document.mark_action("delete", {})
        with pytest.raises(error.BuildError):
            document.mark_action("replace", {"id": 1})

    def testListRequest(self):
        element = build_list_request("invoice", {"id": 42}).xmlelement()
        assert element.tag == ns("lst", "listInvoiceRequest")
        assert element.get("invoiceVersion") == "2.0"
        assert element.get("invoiceType") == "issuedInvoice"
        assert element.findtext(".//%s/%s" % (ns("ftr", "filter"), ns("ftr", "id"))) == "42"

        element = build_list_request("stock").xmlelement()
        assert element.find(".//" + ns("ftr", "filter")) is None


class TestEnvelope:
    def testAttributes(self):
        envelope = Envelope(ico="12345678", application="Shop")
        assert len(envelope.id) == 20
        assert envelope.id.isdigit()
        root = etree.fromstring(envelope.serialize())
        assert root.tag == ns("dat", "dataPack")
        assert root.get("version") == "2.0"
        assert root.get("ico") == "12345678"
        assert root.get("application") == "Shop"
        assert root.get("note").startswith("generated by python-mserver")
        assert len(root) == 0

    def testNamespacesOnTop(self):
        envelope = Envelope()
        envelope.add_document(2, build_document("invoice", invoice).mark_action("add"))
        body = envelope.serialize()
        assert body.startswith(b"<?xml")
        root = etree.fromstring(body)
        assert root.get("ico") is None
        ## declared once on the dataPack, not repeated on every element
        assert body.count(nsmap["typ"].encode("ascii")) == 1
        item = root.find(ns("dat", "dataPackItem"))
        assert item.get("id") == "2"
        assert item.get("version") == "2.0"

    def testSeveralDocuments(self):
        envelope = Envelope()
        envelope.add_document(1, build_document("addressbook", {"email": "a@example.com"}))
        envelope.add_document(2, build_list_request("addressbook"))
        assert len(envelope) == 2
        root = etree.fromstring(envelope.serialize())
        assert [item.get("id") for item in root] == ["1", "2"]

    def testParseDataPack(self):
        envelope = Envelope()
        envelope.add_document(2, build_document("invoice", invoice).mark_action("add"))
        records = parse_data_pack(envelope.serialize(), "invoice")
        assert records == [invoice]

    def testParseGarbage(self):
        with pytest.raises(error.ProtocolParseError):
            parse_data_pack(b"<not-closed>", "invoice")
        with pytest.raises(error.ProtocolParseError):
            parse_data_pack(b"<foo/>", "invoice")
