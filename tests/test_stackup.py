#  Tests for the layer stack and the merge passes.
#
#  See LICENSE for licence details.

from techgen.exceptions import ConfigError, ParseError
from techgen.logging.test import LoggingCaptureContext
from techgen.tech import (LayerRecord, LayerStack, parse_gds_source, apply_gds_and_color, apply_height_thickness,
                          interpolate_vias)
from techgen.utils import LefEntry, LypEntry

from utils.pdk import StackupTestHelper

import pydantic
import pytest


class TestLayerStack:
    def test_from_setting(self) -> None:
        stack = LayerStack.from_setting({
            "name": "s",
            "layers": [
                {"name": "Substrate", "gds_number": 255, "color": "#FFFFFF", "height": -10.0, "thickness": 10.0},
                {"name": "Metal1", "metal": True},
            ]
        })
        assert [l.name for l in stack.layers] == ["Substrate", "Metal1"]
        assert stack.get_layer("Metal1").metal
        assert stack.get_layer("Metal1").color == "#000000"
        assert stack.get_layer("Substrate").top == 0.0

    def test_duplicate_names(self) -> None:
        with pytest.raises(ConfigError):
            LayerStack.from_setting({"name": "s", "layers": [{"name": "Metal1"}, {"name": "Metal1"}]})

    def test_bad_color(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            LayerRecord(name="Metal1", color="blue")

    def test_get_missing_layer(self) -> None:
        with pytest.raises(ValueError):
            StackupTestHelper.create_metal_via_stack().get_layer("Metal9")


class TestGdsAndColor:
    def test_parse_gds_source(self) -> None:
        assert parse_gds_source("8/0") == (8, 0)
        assert parse_gds_source("134/25@1") == (134, 25)
        assert parse_gds_source(" 19/0 ") == (19, 0)
        for bad in ["8", "8/0/1", "", "a/b", "8/", "/0", "8/0@"]:
            with pytest.raises(ParseError):
                parse_gds_source(bad)

    def test_apply(self) -> None:
        stack = StackupTestHelper.create_metal_via_stack()
        entries = [
            LypEntry(name="Metal1.drawing", source="8/0@1", color="#39BFFF"),
            LypEntry(name="Via1.drawing", source="19/3", color="#ccccd9"),
            # Not in the stack.
            LypEntry(name="Activ.drawing", source="1/0", color="#00FF00"),
        ]
        result = apply_gds_and_color(stack, entries)
        assert result is stack
        metal1 = stack.get_layer("Metal1")
        assert (metal1.gds_number, metal1.gds_datatype, metal1.color) == (8, 0, "#39BFFF")
        via1 = stack.get_layer("Via1")
        assert (via1.gds_number, via1.gds_datatype, via1.color) == (19, 3, "#ccccd9")
        # Untouched layers keep their defaults.
        assert stack.get_layer("Metal2").gds_number == 0
        assert [l.name for l in stack.layers] == ["Substrate", "Metal1", "Via1", "Metal2"]

    def test_bad_source(self) -> None:
        stack = StackupTestHelper.create_metal_via_stack()
        with pytest.raises(ParseError):
            apply_gds_and_color(stack, [LypEntry(name="Metal1.drawing", source="8", color="#39BFFF")])

    def test_bad_color(self) -> None:
        stack = StackupTestHelper.create_metal_via_stack()
        with pytest.raises(ParseError):
            apply_gds_and_color(stack, [LypEntry(name="Metal1.drawing", source="8/0", color="")])


class TestHeightThickness:
    def test_apply(self) -> None:
        stack = StackupTestHelper.create_metal_via_stack()
        apply_height_thickness(stack, [
            LefEntry(name="Metal1", type="ROUTING", height=1.2, thickness=0.5),
            LefEntry(name="Via1", type="CUT", height=0.0, thickness=0.0),
            LefEntry(name="Metal2", type="ROUTING", height=2.3, thickness=0.6),
            LefEntry(name="Metal9", type="ROUTING", height=9.0, thickness=1.0),
        ])
        assert (stack.get_layer("Metal1").height, stack.get_layer("Metal1").thickness) == (1.2, 0.5)
        assert (stack.get_layer("Metal2").height, stack.get_layer("Metal2").thickness) == (2.3, 0.6)
        assert (stack.get_layer("Via1").height, stack.get_layer("Via1").thickness) == (0.0, 0.0)

    def test_zero_thickness_keeps_default(self) -> None:
        stack = StackupTestHelper.create_test_stack([LayerRecord(name="Cont", height=0.32, thickness=0.64)])
        apply_height_thickness(stack, [LefEntry(name="Cont", type="CUT", height=5.0, thickness=0.0)])
        assert (stack.get_layer("Cont").height, stack.get_layer("Cont").thickness) == (0.32, 0.64)


class TestInterpolateVias:
    def test_interpolate(self) -> None:
        stack = StackupTestHelper.create_test_stack([
            LayerRecord(name="Metal1", height=0.0, thickness=1.0),
            LayerRecord(name="Via1", height=0.0, thickness=0.0),
            LayerRecord(name="Metal2", height=0.0, thickness=0.0),
        ])
        stack.get_layer("Metal2").height = 5.0
        stack.get_layer("Metal2").thickness = 1.0
        assert interpolate_vias(stack) is stack
        assert stack.get_layer("Via1").height == 1.0
        assert stack.get_layer("Via1").thickness == 4.0

    def test_resolved_vias_are_kept(self) -> None:
        stack = StackupTestHelper.create_test_stack([
            LayerRecord(name="Metal1", height=0.0, thickness=1.0),
            LayerRecord(name="Via1", height=1.5, thickness=0.5),
            LayerRecord(name="Metal2", height=5.0, thickness=1.0),
        ])
        interpolate_vias(stack)
        assert (stack.get_layer("Via1").height, stack.get_layer("Via1").thickness) == (1.5, 0.5)

    def test_top_via(self) -> None:
        """Names containing Via anywhere (e.g. TopVia1) are interpolated too."""
        stack = StackupTestHelper.create_test_stack([
            LayerRecord(name="Metal5", height=4.0, thickness=0.5),
            LayerRecord(name="TopVia1"),
            LayerRecord(name="TopMetal1", height=5.5, thickness=2.0),
            LayerRecord(name="TopVia2"),
            LayerRecord(name="TopMetal2", height=10.5, thickness=3.0),
        ])
        interpolate_vias(stack)
        assert (stack.get_layer("TopVia1").height, stack.get_layer("TopVia1").thickness) == (4.5, 1.0)
        assert (stack.get_layer("TopVia2").height, stack.get_layer("TopVia2").thickness) == (7.5, 3.0)

    def test_via_at_edges(self) -> None:
        for records in ([LayerRecord(name="Via1"), LayerRecord(name="Metal2", height=1.0)],
                        [LayerRecord(name="Metal1", thickness=1.0), LayerRecord(name="Via1")]):
            stack = StackupTestHelper.create_test_stack(records)
            before = stack.model_copy(deep=True)
            with pytest.raises(ConfigError):
                interpolate_vias(stack)
            assert stack == before

    def test_negative_thickness_warns(self) -> None:
        stack = StackupTestHelper.create_test_stack([
            LayerRecord(name="Metal1", height=1.0, thickness=1.0),
            LayerRecord(name="Via1"),
            LayerRecord(name="Metal2"),
        ])
        with LoggingCaptureContext() as c:
            interpolate_vias(stack)
        assert stack.get_layer("Via1").thickness == -2.0
        assert c.log_contains("negative thickness")

    def test_full_merge(self) -> None:
        stack = StackupTestHelper.create_metal_via_stack()
        stack = apply_gds_and_color(stack, [LypEntry(name="Via1.drawing", source="19/0", color="#CCCCD9")])
        stack = apply_height_thickness(stack, [
            LefEntry(name="Metal1", type="ROUTING", height=1.25, thickness=0.5),
            LefEntry(name="Via1", type="CUT", height=0.0, thickness=0.0),
            LefEntry(name="Metal2", type="ROUTING", height=2.25, thickness=0.5),
        ])
        stack = interpolate_vias(stack)
        via1 = stack.get_layer("Via1")
        assert (via1.gds_number, via1.height, via1.thickness) == (19, 1.75, 0.5)
