#!/usr/bin/env python
from typing import ClassVar

from .base import BaseElement
from mserver.lib.namespace import ns


# Filters
class Filter(BaseElement):
    tag: ClassVar[str] = ns("ftr", "filter")
