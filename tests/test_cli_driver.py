#  Tests for the techgen command line and TechgenDriver.
#
#  See LICENSE for licence details.

import json
import os

import pytest

from techgen.driver import TechgenDriver
from techgen.exceptions import ConfigError
from techgen.logging import TechgenLogging
from techgen.logging.test import LoggingCaptureContext
from techgen.shell.techgen import main

from utils.pdk import LEF_SOURCE, LYP_SOURCE

DEFAULT_STACK_NAMES = ["Substrate", "NWell", "PWell", "Active", "ResPoly", "GatPoly", "Cont", "Metal1", "Via1",
                       "Metal2", "Via2", "Metal3", "Via3", "Metal4", "Via4", "Metal5", "TopVia1", "TopMetal1",
                       "TopVia2", "TopMetal2", "MIM"]


@pytest.fixture
def inputs(tmp_path):
    lyp = tmp_path / "sg13g2.lyp"
    lyp.write_text(LYP_SOURCE)
    lef = tmp_path / "sg13g2_tech.lef"
    lef.write_text(LEF_SOURCE)
    config = tmp_path / "project.yml"
    config.write_text("techgen:\n  techfile:\n    header:\n      date: \"2024-08-10 12:00:00\"\n")
    return tmp_path


def run_cli(args) -> int:
    with LoggingCaptureContext():
        with pytest.raises(SystemExit) as e:
            main(args)
    return e.value.code


def layer_blocks(techfile: str):
    blocks = []
    for chunk in techfile.split("LayerStart: ")[1:]:
        fields = {}
        name, rest = chunk.split("\n", 1)
        for line in rest.split("LayerEnd")[0].splitlines():
            key, value = line.split(": ")
            fields[key] = value
        blocks.append((name, fields))
    return blocks


class TestCLI:
    def teardown_method(self) -> None:
        TechgenLogging.reset_callbacks()

    def test_writes_techfile(self, inputs) -> None:
        out = inputs / "out.txt"
        code = run_cli(["-p", str(inputs / "project.yml"), "--lyp", str(inputs / "sg13g2.lyp"),
                        "--lef", str(inputs / "sg13g2_tech.lef"), "-o", str(out)])
        assert code == 0

        techfile = out.read_text()
        assert techfile.startswith("# Autogenerated GDS3D techfile \n# Process : IHP 130nm open source \n")
        assert "# Date    : 2024-08-10 12:00:00\n" in techfile

        blocks = layer_blocks(techfile)
        assert [name for name, _ in blocks] == DEFAULT_STACK_NAMES
        assert techfile.count("LayerEnd\n") == len(DEFAULT_STACK_NAMES)

        fields = dict(blocks)
        assert fields["Substrate"]["Layer"] == "255"
        assert fields["Metal1"]["Layer"] == "8"
        assert fields["Metal1"]["Height"] == "1200"
        assert fields["Metal1"]["Thickness"] == "500"
        assert fields["Metal1"]["Red"] == "0.22"
        assert fields["Metal1"]["Metal"] == "1"
        assert fields["Via1"]["Layer"] == "19"
        assert fields["Via1"]["Height"] == "1700"
        assert fields["Via1"]["Thickness"] == "600"
        assert fields["MIM"]["Height"] == "5300"
        assert fields["MIM"]["Thickness"] == "150"

    def test_missing_lef(self, inputs) -> None:
        out = inputs / "out.txt"
        code = run_cli(["--lyp", str(inputs / "sg13g2.lyp"), "--lef", str(inputs / "missing.lef"), "-o", str(out)])
        assert code == 1
        assert not out.exists()

    def test_lef_with_latin1_comment(self, inputs) -> None:
        lef = inputs / "latin1.lef"
        lef.write_bytes(b"# Copyright \xa9 2024\n" + LEF_SOURCE.encode("ascii"))
        out = inputs / "out.txt"
        code = run_cli(["--lyp", str(inputs / "sg13g2.lyp"), "--lef", str(lef), "-o", str(out)])
        assert code == 0
        assert "LayerStart: Metal1\nLayer: 8\nDatatype: 0\nHeight: 1200\nThickness: 500\n" in out.read_text()

    def test_malformed_lyp(self, inputs) -> None:
        (inputs / "bad.lyp").write_text("<layer-properties><properties>")
        out = inputs / "out.txt"
        code = run_cli(["--lyp", str(inputs / "bad.lyp"), "--lef", str(inputs / "sg13g2_tech.lef"), "-o", str(out)])
        assert code == 1
        assert not out.exists()

    def test_bad_project_config(self, inputs) -> None:
        (inputs / "bad.yml").write_text("- not\n- a mapping\n")
        assert run_cli(["-p", str(inputs / "bad.yml")]) == 1

    def test_dump_stackup(self, inputs, capsys) -> None:
        out = inputs / "out.txt"
        code = run_cli(["--lyp", str(inputs / "sg13g2.lyp"), "--lef", str(inputs / "sg13g2_tech.lef"),
                        "-o", str(out), "--dump-stackup"])
        assert code == 0
        assert not out.exists()
        stack = json.loads(capsys.readouterr().out)
        assert stack["name"] == "sg13g2"
        assert [l["name"] for l in stack["layers"]] == DEFAULT_STACK_NAMES
        assert stack["layers"][DEFAULT_STACK_NAMES.index("Metal2")]["gds_number"] == 0

    def test_log_file(self, inputs) -> None:
        log = inputs / "techgen.log"
        code = run_cli(["--lyp", str(inputs / "sg13g2.lyp"), "--lef", str(inputs / "sg13g2_tech.lef"),
                        "-o", str(inputs / "out.txt"), "-l", str(log)])
        assert code == 0
        contents = log.read_text()
        assert "[techgen] INFO: Reading technology LEF from" in contents
        assert "[lef] INFO: Read 3 layer(s) from" in contents


class TestTechgenDriver:
    def teardown_method(self) -> None:
        TechgenLogging.reset_callbacks()

    def test_prependlocal_inputs(self, inputs) -> None:
        config = inputs / "paths.yml"
        config.write_text("""
techgen:
  inputs:
    lyp: sg13g2.lyp
    lyp_meta: prependlocal
    lef: sg13g2_tech.lef
    lef_meta: prependlocal
  output: out.txt
  output_meta: prependlocal
""")
        options = TechgenDriver.get_default_driver_options()._replace(project_configs=[str(config)])
        driver = TechgenDriver(options)
        try:
            assert driver.get_path("techgen.inputs.lef") == os.path.join(str(inputs), "sg13g2_tech.lef")
            with LoggingCaptureContext():
                driver.run()
        finally:
            driver.close()
        assert (inputs / "out.txt").exists()

    def test_runtime_overrides(self) -> None:
        driver = TechgenDriver(TechgenDriver.get_default_driver_options(), {"techgen.output": "custom.txt"})
        assert driver.get_path("techgen.output") == "custom.txt"
        assert driver.get_path("techgen.inputs.lyp") == "sg13g2.lyp"
        assert driver.lef_layers()[0] == "GatPoly"
        assert len(driver.load_stackup().layers) == len(DEFAULT_STACK_NAMES)

    def test_invalid_settings(self) -> None:
        driver = TechgenDriver(TechgenDriver.get_default_driver_options(),
                               {"techgen.output": "", "techgen.lef.layers": "Metal1"})
        with pytest.raises(ConfigError):
            driver.get_path("techgen.output")
        with pytest.raises(ConfigError):
            driver.lef_layers()
        with pytest.raises(ConfigError):
            driver.get_setting("techgen.missing")

    def test_invalid_stack(self) -> None:
        driver = TechgenDriver(TechgenDriver.get_default_driver_options(),
                               {"techgen.stackup.layers": [{"name": "Metal1", "color": "blue"}]})
        with pytest.raises(ConfigError):
            driver.load_stackup()
