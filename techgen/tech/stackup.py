#  Data structures for the process layer stack and the passes which merge the
#  layer properties and LEF data into it.
#
#  See LICENSE for licence details.

import re
from typing import Dict, Iterable, List, Tuple

from pydantic import BaseModel, ValidationError, field_validator

from techgen.exceptions import ConfigError, ParseError
from techgen.logging import TechgenLogging
from techgen.utils import LefEntry, LypEntry

__all__ = ['LayerRecord', 'LayerStack', 'parse_gds_source', 'apply_gds_and_color', 'apply_height_thickness',
           'interpolate_vias']

COLOR_REGEX = re.compile(r"^#[0-9A-Fa-f]{6}$")

# "<layer>/<datatype>", optionally followed by KLayout's "@<layout index>".
GDS_SOURCE_REGEX = re.compile(r"^(\d+)/(\d+)(?:@\d+)?$")


class LayerRecord(BaseModel):
    """
    One layer of the stack.

    name: Layer name, unique within the stack (e.g. Metal1, Via1).
    gds_number: GDS layer number.
    gds_datatype: GDS datatype.
    color: Fill colour as #RRGGBB.
    height: Bottom of the layer in um.
    thickness: Vertical extent of the layer in um.
    metal: True for metal layers. Only used to annotate the techfile.
    """
    name: str
    gds_number: int = 0
    gds_datatype: int = 0
    color: str = "#000000"
    height: float = 0.0
    thickness: float = 0.0
    metal: bool = False

    @field_validator("color")
    @classmethod
    def color_must_be_rgb_hex(cls, v: str) -> str:
        if not COLOR_REGEX.match(v):
            raise ValueError("color {c} is not of the form #RRGGBB".format(c=v))
        return v

    @property
    def top(self) -> float:
        return self.height + self.thickness


class LayerStack(BaseModel):
    """
    The layer stack, ordered from the bottom (substrate) to the top.
    The order is fixed once constructed; the merge passes only update fields.
    """
    name: str
    layers: List[LayerRecord]

    @field_validator("layers")
    @classmethod
    def names_must_be_unique(cls, v: List[LayerRecord]) -> List[LayerRecord]:
        seen = set()
        for layer in v:
            if layer.name in seen:
                raise ValueError("Layer {n} appears more than once in the stack".format(n=layer.name))
            seen.add(layer.name)
        return v

    @staticmethod
    def from_setting(d: dict) -> "LayerStack":
        """
        Build a stack from a dict with keys "name" and "layers", where "layers"
        is a list of dicts with the LayerRecord fields.
        Raises ConfigError if the settings do not describe a valid stack.
        """
        try:
            return LayerStack.model_validate(d)
        except ValidationError as e:
            raise ConfigError("Invalid layer stack: {e}".format(e=e)) from e

    def get_layer(self, name: str) -> LayerRecord:
        """
        Get a given layer by name.

        :param name: Name of the layer
        :return: The layer record
        """
        for layer in self.layers:
            if layer.name == name:
                return layer
        raise ValueError("Layer named %s is not defined in stack %s" % (name, self.name))

    def layers_by_name(self) -> Dict[str, LayerRecord]:
        return {layer.name: layer for layer in self.layers}


def parse_gds_source(source: str) -> Tuple[int, int]:
    """
    Split a layer properties source like "8/0" or "8/0@1" into (layer, datatype).
    Raises ParseError for anything else.
    """
    match = GDS_SOURCE_REGEX.match(source.strip())
    if match is None:
        raise ParseError("GDS source '{s}' is not of the form <layer>/<datatype>".format(s=source))
    return int(match.group(1)), int(match.group(2))


def apply_gds_and_color(stack: LayerStack, lyp_entries: Iterable[LypEntry]) -> LayerStack:
    """
    Copy GDS layer/datatype and fill colour from the layer properties onto the
    layers of the same base name. Entries without a matching layer are ignored.

    :param stack: Stack to update in place
    :param lyp_entries: Drawing layers from LYPUtils
    :return: The same stack
    """
    logger = TechgenLogging.context("stackup")
    by_name = stack.layers_by_name()
    for entry in lyp_entries:
        layer = by_name.get(entry.base_name)
        if layer is None:
            logger.debug("No layer {n} in the stack, skipping".format(n=entry.name))
            continue
        gds_number, gds_datatype = parse_gds_source(entry.source)
        if not COLOR_REGEX.match(entry.color):
            raise ParseError("Fill colour '{c}' of {n} is not of the form #RRGGBB".format(c=entry.color, n=entry.name))
        layer.gds_number = gds_number
        layer.gds_datatype = gds_datatype
        layer.color = entry.color
        logger.debug("Layer: {n}, Number: {s}, Color: {c}".format(n=layer.name, s=entry.source, c=layer.color))
    return stack


def apply_height_thickness(stack: LayerStack, lef_entries: Iterable[LefEntry]) -> LayerStack:
    """
    Copy height and thickness from the LEF onto the layers of the same name.
    LEF layers without a positive thickness are left for interpolate_vias().

    :param stack: Stack to update in place
    :param lef_entries: Layers from LEFUtils
    :return: The same stack
    """
    logger = TechgenLogging.context("stackup")
    by_name = stack.layers_by_name()
    for entry in lef_entries:
        logger.debug("Layer: {n}, Type: {t}, Thickness: {th:f}, Height: {h:f}".format(
            n=entry.name, t=entry.type, th=entry.thickness, h=entry.height))
        layer = by_name.get(entry.name)
        if layer is None or not entry.thickness > 0.0:
            continue
        layer.height = entry.height
        layer.thickness = entry.thickness
    return stack


def interpolate_vias(stack: LayerStack) -> LayerStack:
    """
    Fill in vias which still have zero thickness: a via starts at the top of the
    layer below it and ends at the bottom of the layer above it.

    The layers around each such via must already have their final heights, and
    the via must not be the first or last layer of the stack (ConfigError).

    :param stack: Stack to update in place
    :return: The same stack
    """
    logger = TechgenLogging.context("stackup")
    layers = stack.layers

    def needs_interpolation(layer: LayerRecord) -> bool:
        return "Via" in layer.name and layer.thickness == 0.0

    for i, layer in enumerate(layers):
        if needs_interpolation(layer) and (i == 0 or i == len(layers) - 1):
            raise ConfigError("Via {n} has no thickness and no layer {side} it in stack {s}".format(
                n=layer.name, side="below" if i == 0 else "above", s=stack.name))

    for i, layer in enumerate(layers):
        if not needs_interpolation(layer):
            continue
        layer.height = layers[i - 1].top
        layer.thickness = layers[i + 1].height - layer.height
        logger.info("Layer: {n}, Height: {h:f}, Thickness: {t:f}".format(n=layer.name, h=layer.height,
                                                                         t=layer.thickness))
        if layer.thickness < 0.0:
            logger.warning("Via {n} ends up with negative thickness {t:f}; is {above} resolved?".format(
                n=layer.name, t=layer.thickness, above=layers[i + 1].name))
    return stack
