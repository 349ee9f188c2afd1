#  driver.py
#  TechgenDriver: reads the settings, runs the loaders and merge passes and
#  writes the techfile.
#
#  See LICENSE for licence details.

from typing import Any, Callable, List, NamedTuple, Optional

import yaml
from pydantic import ValidationError

import techgen.config as techgen_config
from techgen.exceptions import ConfigError
from techgen.logging import TechgenFileLogger, TechgenLogging, TechgenLoggingContext
from techgen.logging.logging import FullMessage
from techgen.tech import (LayerStack, TechfileHeader, TechfileWriter, apply_gds_and_color, apply_height_thickness,
                          interpolate_vias)
from techgen.utils import LEFUtils, LYPUtils

__all__ = ['TechgenDriverOptions', 'TechgenDriver']

# Options for invoking the driver.
TechgenDriverOptions = NamedTuple('TechgenDriverOptions', [
    # List of project config files in .json or .yml
    ('project_configs', List[str]),
    # Log file location, or None to only log to the terminal.
    ('log_file', Optional[str])
])


class TechgenDriver:
    @staticmethod
    def get_default_driver_options() -> TechgenDriverOptions:
        return TechgenDriverOptions(project_configs=[], log_file=None)

    def __init__(self, options: TechgenDriverOptions, extra_project_config: dict = {}) -> None:
        """
        Set up logging and the settings database.

        :param options: Driver options.
        :param extra_project_config: Flattened settings which override the project configs
                                     (e.g. command line flags).
        """
        self.log = TechgenLogging.context("techgen")  # type: TechgenLoggingContext
        self.options = options

        self.database = techgen_config.TechgenDatabase()  # type: techgen_config.TechgenDatabase
        self.database.update_defaults(techgen_config.load_config_from_defaults("techgen.config"))
        try:
            self.database.update_project(techgen_config.load_config_from_paths(options.project_configs))
        except (ValueError, yaml.YAMLError) as e:
            raise ConfigError("Could not load project config: {e}".format(e=e)) from e
        for key, value in extra_project_config.items():
            self.database.set_setting(key, value)

        self.file_logger = None  # type: Optional[TechgenFileLogger]
        self._file_callback = None  # type: Optional[Callable[[FullMessage], None]]
        if options.log_file is not None:
            self.file_logger = TechgenFileLogger(options.log_file)
            self._file_callback = self.file_logger.callback
            TechgenLogging.add_callback(self._file_callback)

    def close(self) -> None:
        """Detach and close the log file, if any."""
        if self.file_logger is not None:
            if self._file_callback in TechgenLogging.callbacks:
                TechgenLogging.callbacks.remove(self._file_callback)
            self.file_logger.close()
            self.file_logger = None
            self._file_callback = None

    def get_setting(self, key: str) -> Any:
        """Get a setting, turning a missing key into a ConfigError."""
        try:
            return self.database.get_setting(key)
        except KeyError as e:
            raise ConfigError("Missing setting {k}".format(k=key)) from e
        except ValueError as e:
            raise ConfigError("Could not resolve setting {k}: {e}".format(k=key, e=e)) from e

    def get_path(self, key: str) -> str:
        value = self.get_setting(key)
        if not isinstance(value, str) or value == "":
            raise ConfigError("Setting {k} must be a non-empty path, got {v!r}".format(k=key, v=value))
        return value

    def load_stackup(self) -> LayerStack:
        """Build the default layer stack from the techgen.stackup settings."""
        return LayerStack.from_setting({
            "name": self.get_setting("techgen.stackup.name"),
            "layers": self.get_setting("techgen.stackup.layers")
        })

    def load_header(self) -> TechfileHeader:
        try:
            return TechfileHeader.model_validate(self.database.get_settings_with_prefix("techgen.techfile.header"))
        except ValidationError as e:
            raise ConfigError("Invalid techfile header settings: {e}".format(e=e)) from e

    def lef_layers(self) -> List[str]:
        layers = self.get_setting("techgen.lef.layers")
        if not isinstance(layers, list) or not all(isinstance(l, str) for l in layers):
            raise ConfigError("techgen.lef.layers must be a list of layer names")
        return layers

    def build_stackup(self) -> LayerStack:
        """
        Read both inputs and merge them onto the default stack.
        Raises OSError, ParseError or ConfigError; nothing is written.
        """
        lyp_path = self.get_path("techgen.inputs.lyp")
        lef_path = self.get_path("techgen.inputs.lef")

        self.log.info("Loading layer stack {n}".format(n=self.get_setting("techgen.stackup.name")))
        stack = self.load_stackup()

        self.log.info("Reading layer properties from {p}".format(p=lyp_path))
        lyp_entries = LYPUtils.get_layers(lyp_path)

        self.log.info("Reading technology LEF from {p}".format(p=lef_path))
        lef = LEFUtils.get_tech(lef_path, self.lef_layers())
        self.log.debug("LEF version {v}, divider {d}".format(v=lef.version, d=lef.divider_char))

        stack = apply_gds_and_color(stack, lyp_entries)
        stack = apply_height_thickness(stack, lef.layers)
        return interpolate_vias(stack)

    def run(self) -> LayerStack:
        """Build the stack and write the techfile."""
        stack = self.build_stackup()
        writer = TechfileWriter(self.load_header())
        writer.write(stack, self.get_path("techgen.output"))
        return stack
