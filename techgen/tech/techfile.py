#  Writer for the GDS3D techfile format.
#
#  See LICENSE for licence details.

import datetime
from typing import List, Optional

from pydantic import BaseModel

from techgen.logging import TechgenLogging

from .stackup import LayerRecord, LayerStack

__all__ = ['TechfileHeader', 'TechfileWriter']

# GDS3D draws the substrate from this layer number, whatever the PDK says.
SUBSTRATE_LAYER = "Substrate"
SUBSTRATE_GDS_NUMBER = 255

# Stack dimensions are in um, GDS3D expects nm.
UNIT_SCALE = 1000.0


class TechfileHeader(BaseModel):
    """
    Comment block at the top of the techfile.

    process: Process name, e.g. "IHP 130nm open source".
    author: Author line.
    date: Date string, or None to use the time the file is rendered.
    copyright: Free-form lines (copyright, licence) appended after the date.
    """
    process: str = ""
    author: str = ""
    date: Optional[str] = None
    copyright: List[str] = []


class TechfileWriter:
    """Serializes a LayerStack to the techfile read by GDS3D."""

    def __init__(self, header: TechfileHeader) -> None:
        self.header = header
        self.logger = TechgenLogging.context("techfile")

    def render_header(self) -> str:
        date = self.header.date
        if date is None:
            date = datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        # The first three lines keep the trailing space GDS3D techfiles have always carried.
        lines = [
            "Autogenerated GDS3D techfile ",
            "Process : " + self.header.process + " ",
            "Author  : " + self.header.author + " ",
            "Date    : " + date,
            "",
        ] + self.header.copyright
        return "".join("# " + line + "\n" for line in lines) + "\n"

    @staticmethod
    def color_channels(color: str) -> List[str]:
        """
        Convert "#RRGGBB" into the three channels scaled to 0..1 with two decimals.
        >>> TechfileWriter.color_channels("#FF8000")
        ['1.00', '0.50', '0.00']
        """
        return ["%.2f" % (int(color[i:i + 2], 16) / 255.0) for i in (1, 3, 5)]

    @staticmethod
    def render_layer(layer: LayerRecord) -> str:
        gds_number = SUBSTRATE_GDS_NUMBER if layer.name == SUBSTRATE_LAYER else layer.gds_number
        red, green, blue = TechfileWriter.color_channels(layer.color)
        fields = [
            ("LayerStart", layer.name),
            ("Layer", str(gds_number)),
            ("Datatype", str(layer.gds_datatype)),
            ("Height", "%.0f" % (layer.height * UNIT_SCALE)),
            ("Thickness", "%.0f" % (layer.thickness * UNIT_SCALE)),
            ("Red", red),
            ("Green", green),
            ("Blue", blue),
            ("Filter", "0.0"),
            ("Metal", "1" if layer.metal else "0"),
            ("Show", "1"),
        ]
        return "".join("{k}: {v}\n".format(k=k, v=v) for k, v in fields) + "LayerEnd\n\n"

    def render(self, stack: LayerStack) -> str:
        """Render the whole techfile."""
        return self.render_header() + "".join(self.render_layer(layer) for layer in stack.layers)

    def write(self, stack: LayerStack, path: str) -> None:
        """
        Write the techfile. The contents are rendered before the file is opened,
        so nothing is written if rendering fails. Raises OSError on I/O failure.
        """
        contents = self.render(stack)
        with open(path, "w", encoding="utf-8") as f:
            f.write(contents)
        self.logger.info("Wrote {n} layer(s) to {p}".format(n=len(stack.layers), p=path))
