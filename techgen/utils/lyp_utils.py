#  lyp_utils.py
#  Read layer names, GDS sources and colours from a KLayout layer properties file.
#
#  See LICENSE for licence details.

import xml.etree.ElementTree as ET
from typing import List, NamedTuple, Optional, Union

from techgen.exceptions import ParseError
from techgen.logging import TechgenLogging

__all__ = ['LYPUtils', 'LypEntry']


class LypEntry(NamedTuple('LypEntry', [
    # e.g. "Metal1.drawing"
    ('name', str),
    # e.g. "8/0" or "8/0@1"
    ('source', str),
    # e.g. "#39bfff"
    ('color', str)
])):
    __slots__ = ()

    @property
    def base_name(self) -> str:
        """Layer name without the purpose, e.g. "Metal1"."""
        return self.name.split(".")[0]


class LYPUtils:
    # Only layers with this purpose carry the drawn shapes.
    PURPOSE = "drawing"

    @staticmethod
    def split_layer_name(name: str) -> Optional[str]:
        """
        Return the base name of a "<base>.drawing" layer name, or None for any
        other name (other purposes, no purpose, or more than one '.').
        """
        parts = name.split(".")
        if len(parts) != 2 or parts[1] != LYPUtils.PURPOSE:
            return None
        return parts[0]

    @staticmethod
    def parse(source: Union[str, bytes]) -> List[LypEntry]:
        """
        Parse the drawing layers out of a layer properties document.

        :param source: Contents of the .lyp file. Pass bytes to let the XML declaration pick the encoding.
        :return: The drawing layers, in document order
        """
        try:
            root = ET.fromstring(source)
        except ET.ParseError as e:
            raise ParseError("Layer properties file is not well-formed XML: {e}".format(e=e)) from e
        if root.tag != "layer-properties":
            raise ParseError("Expected root element layer-properties, found {t}".format(t=root.tag))

        def text_of(properties: ET.Element, tag: str) -> str:
            elem = properties.find(tag)
            if elem is None or elem.text is None:
                return ""
            return elem.text.strip()

        logger = TechgenLogging.context("lyp")
        entries = []  # type: List[LypEntry]
        dropped = 0
        for properties in root.findall("properties"):
            entry = LypEntry(name=text_of(properties, "name"),
                             source=text_of(properties, "source"),
                             color=text_of(properties, "fill-color"))
            if LYPUtils.split_layer_name(entry.name) is None:
                dropped += 1
                continue
            logger.debug("Layer name: {n}, Number: {s}, Color: {c}".format(n=entry.name, s=entry.source,
                                                                           c=entry.color))
            entries.append(entry)
        logger.debug("Skipped {d} non-drawing layer(s)".format(d=dropped))
        return entries

    @staticmethod
    def get_layers(path: str) -> List[LypEntry]:
        """
        Read a layer properties file from disk.
        Raises OSError if it cannot be read and ParseError if it is not a layer properties document.
        """
        with open(path, "rb") as f:
            source = f.read()
        entries = LYPUtils.parse(source)
        TechgenLogging.context("lyp").info("Read {n} drawing layer(s) from {p}".format(n=len(entries), p=path))
        return entries
