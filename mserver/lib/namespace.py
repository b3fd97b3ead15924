#!/usr/bin/env python
from typing import Dict
from typing import Optional

SCHEMA_BASE = "http://www.stormware.cz/schema/version_2/"

nsmap: Dict[str, str] = {
    "dat": SCHEMA_BASE + "data.xsd",
    "rsp": SCHEMA_BASE + "response.xsd",
    "rdc": SCHEMA_BASE + "documentresponse.xsd",
    "typ": SCHEMA_BASE + "type.xsd",
    "ftr": SCHEMA_BASE + "filter.xsd",
    "lst": SCHEMA_BASE + "list.xsd",
    "lAdb": SCHEMA_BASE + "list_addBook.xsd",
    "lStk": SCHEMA_BASE + "list_stock.xsd",
    "adb": SCHEMA_BASE + "addressbook.xsd",
    "inv": SCHEMA_BASE + "invoice.xsd",
    "stk": SCHEMA_BASE + "stock.xsd",
    "ord": SCHEMA_BASE + "order.xsd",
    "ofr": SCHEMA_BASE + "offer.xsd",
    "enq": SCHEMA_BASE + "enquiry.xsd",
    "vch": SCHEMA_BASE + "voucher.xsd",
    "int": SCHEMA_BASE + "intDoc.xsd",
    "bnk": SCHEMA_BASE + "bank.xsd",
    "vyr": SCHEMA_BASE + "vyroba.xsd",
}


def ns(prefix: str, tag: Optional[str] = None) -> str:
    name = "{%s}" % nsmap[prefix]
    if tag is not None:
        name = "%s%s" % (name, tag)
    return name


def localname(tag: str) -> str:
    """{http://...}addressbook -> addressbook"""
    if tag.startswith("{"):
        return tag.split("}", 1)[1]
    return tag
