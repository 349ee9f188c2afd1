#  techgen technology data: the layer stack and the techfile writer.
#
#  See LICENSE for licence details.

from .stackup import LayerRecord, LayerStack, parse_gds_source, apply_gds_and_color, apply_height_thickness, \
    interpolate_vias
from .techfile import TechfileHeader, TechfileWriter

__all__ = ['LayerRecord', 'LayerStack', 'parse_gds_source', 'apply_gds_and_color', 'apply_height_thickness',
           'interpolate_vias', 'TechfileHeader', 'TechfileWriter']
