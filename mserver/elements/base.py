#!/usr/bin/env python
import sys
from typing import ClassVar
from typing import Dict
from typing import List
from typing import Optional
from typing import Union

from lxml import etree
from lxml.etree import _Element

from mserver.lib.namespace import nsmap
from mserver.lib.python_utilities import to_unicode

if sys.version_info < (3, 9):
    from typing import Iterable
else:
    from collections.abc import Iterable

if sys.version_info < (3, 11):
    from typing_extensions import Self
else:
    from typing import Self


class BaseElement:
    children: Optional[List[Self]] = None
    tag: ClassVar[Optional[str]] = None
    value: Optional[str] = None
    attributes: Optional[Dict[str, str]] = None

    def __init__(
        self,
        value: Union[str, bytes, None] = None,
        attributes: Optional[Dict[str, str]] = None,
    ) -> None:
        self.children = []
        self.attributes = dict(attributes or {})
        self.value = to_unicode(value)

    def __add__(
        self, other: Union["BaseElement", Iterable["BaseElement"]]
    ) -> "BaseElement":
        return self.append(other)

    def __str__(self) -> str:
        utf8 = etree.tostring(
            self.xmlelement(), encoding="utf-8", xml_declaration=True, pretty_print=True
        )
        return str(utf8, "utf-8")

    def xmlelement(self) -> _Element:
        if self.tag is None:
            raise ValueError("Unexpected value None for self.tag")

        root = etree.Element(self.tag, nsmap=nsmap)
        if self.value is not None:
            root.text = self.value

        for k in self.attributes:
            root.set(k, self.attributes[k])

        self.xmlchildren(root)
        return root

    def xmlchildren(self, root: _Element) -> None:
        for c in self.children:
            root.append(c.xmlelement())

    def append(self, element: Union[Self, Iterable[Self]]) -> Self:
        if isinstance(element, Iterable):
            self.children.extend(element)
        else:
            self.children.append(element)

        return self


class ValuedBaseElement(BaseElement):
    def __init__(self, value: Union[str, bytes, None] = None) -> None:
        super(ValuedBaseElement, self).__init__(value=value)


class VersionedElement(BaseElement):
    """Agenda level elements in a dataPack all carry version="2.0" """

    version: ClassVar[str] = "2.0"

    def __init__(self, attributes: Optional[Dict[str, str]] = None) -> None:
        super(VersionedElement, self).__init__(
            attributes={"version": self.version, **(attributes or {})}
        )


class Field(BaseElement):
    """
    An element whose tag is only known at runtime - one record field,
    an agenda root or a header section.
    """

    def __init__(
        self,
        tag: str,
        value: Union[str, bytes, None] = None,
        attributes: Optional[Dict[str, str]] = None,
    ) -> None:
        super(Field, self).__init__(value=value, attributes=attributes)
        self.tag = tag
