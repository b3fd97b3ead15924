import codecs
import re
from typing import Optional
from typing import Union

## encoding pseudo-attribute of an XML declaration
XML_ENCODING = re.compile(rb"""^\s*<\?xml[^>]*?\sencoding\s*=\s*["']([A-Za-z0-9._-]+)["']""")


def to_wire(text: Union[str, bytes, None]) -> Optional[bytes]:
    if text is None:
        return None
    if isinstance(text, str):
        text = text.encode("utf-8")
    return text


def xml_encoding(body: Optional[bytes]) -> Optional[str]:
    """
    The encoding named in the XML declaration of body, if any and if
    Python knows it.  mServer declares Windows-1250 on most answers.
    """
    if not body:
        return None
    match = XML_ENCODING.match(body)
    if not match:
        return None
    return known_encoding(match.group(1).decode("ascii"))


def known_encoding(name: Optional[str]) -> Optional[str]:
    if not name:
        return None
    try:
        codecs.lookup(name)
    except LookupError:
        return None
    return name


def to_normal_str(
    text: Union[str, bytes, None], encoding: Optional[str] = None
) -> Optional[str]:
    """
    Make sure we return a normal string, whatever the HTTP layer or
    lxml handed over.  Bytes are decoded with the encoding their XML
    declaration names, then the given one, then UTF-8.  Undecodable
    bytes are replaced rather than raised on.
    """
    if text is None:
        return text
    if not isinstance(text, str):
        text = text.decode(
            xml_encoding(text) or known_encoding(encoding) or "utf-8",
            errors="replace",
        )
    text = text.replace("\r\n", "\n")
    return text


def to_unicode(text):
    if text and isinstance(text, bytes):
        return text.decode("utf-8")
    return text
