#  Build the configuration database from the packaged defaults and a series of
#  YAML/JSON project config files.
#
#  See LICENSE for licence details.

# pylint: disable=invalid-name
import importlib.resources
import json
import os
from functools import reduce
from typing import Any, Callable, Dict, Iterable, List

from techgen.logging import TechgenLogging, TechgenLoggingContext
from techgen.utils import deepdict

from .yaml2json import load_yaml

__all__ = ['TechgenDatabase', 'unpack', 'reverse_unpack', 'update_and_expand_meta', 'combine_configs',
           'load_config_from_string', 'load_config_from_paths', 'load_config_from_defaults']

# Special key recording the directory of the config file a setting came from.
_CONFIG_PATH_KEY = "_config_path"


def _prependlocal_action(config_dict: dict, key: str, value: Any) -> None:
    """Prepend the directory of the config file to a path or list of paths."""
    if isinstance(value, list):
        config_dict[key] = [os.path.join(config_dict[_CONFIG_PATH_KEY], str(v)) for v in value]
    else:
        config_dict[key] = os.path.join(config_dict[_CONFIG_PATH_KEY], str(value))


def _prependcwd_action(config_dict: dict, key: str, value: Any) -> None:
    """Prepend the current working directory to a path."""
    config_dict[key] = os.path.join(os.getcwd(), str(value))


# Meta directive name -> action(config_dict, key, value).
# The action updates config_dict[key] in place.
META_DIRECTIVES = {
    "prependlocal": _prependlocal_action,
    "prependcwd": _prependcwd_action,
}  # type: Dict[str, Callable[[dict, str, Any], None]]


def unpack(config_dict: dict, prefix: str = "") -> dict:
    """
    Unpack the given config_dict, flattening key names recursively.
    >>> p = unpack({"one": 1, "two": 2}, prefix="snack")
    >>> p == {'snack.one': 1, 'snack.two': 2}
    True
    >>> p = unpack({"techgen": {"inputs": {"lyp": "a.lyp", "lef": "a.lef"}}})
    >>> p == {"techgen.inputs.lyp": "a.lyp", "techgen.inputs.lef": "a.lef"}
    True
    """
    real_prefix = "" if prefix == "" else prefix + "."
    output_dict = {}
    for key, value in config_dict.items():
        if isinstance(value, dict):
            output_dict.update(unpack(value, real_prefix + key))
        else:
            output_dict[real_prefix + key] = value
    return output_dict


def reverse_unpack(input_dict: dict) -> dict:
    """
    Reverse the effects of unpack().
    >>> p = reverse_unpack({"a.b": 1})
    >>> p == {"a": {"b": 1}}
    True
    """
    output_dict = {}  # type: Dict[str, Any]
    for key, value in input_dict.items():
        key_parts = key.split(".")
        containing_dict = output_dict
        for part in key_parts[:-1]:
            containing_dict = containing_dict.setdefault(part, {})
        containing_dict[key_parts[-1]] = value
    return output_dict


def update_and_expand_meta(config_dict: dict, meta_dict: dict) -> dict:
    """
    Return a new dictionary with meta_dict layered on top of config_dict, after
    expanding any meta directives in meta_dict.

    A meta directive is written as a sibling key with a "_meta" suffix, e.g.
    {"techgen.inputs.lef": "tech.lef", "techgen.inputs.lef_meta": "prependlocal"}.

    :param config_dict: Base config.
    :param meta_dict: Unpacked config which overrides config_dict.
    :return: New combined dictionary.
    """
    assert isinstance(config_dict, dict)
    assert isinstance(meta_dict, dict)

    meta_dict = deepdict(meta_dict)
    meta_len = len("_meta")
    for meta_key in [k for k in meta_dict if k.endswith("_meta")]:
        setting = meta_key[:-meta_len]
        directive = meta_dict[meta_key]
        if directive not in META_DIRECTIVES:
            raise ValueError("The type of meta variable %s is not supported (%s)" % (meta_key, directive))
        if setting not in meta_dict:
            raise ValueError("Meta directive %s has no matching setting %s" % (meta_key, setting))
        if directive == "prependlocal" and _CONFIG_PATH_KEY not in meta_dict:
            raise ValueError("prependlocal on %s needs the path of its config file" % setting)
        META_DIRECTIVES[directive](meta_dict, setting, meta_dict[setting])
        del meta_dict[meta_key]

    newdict = deepdict(config_dict)
    newdict.update(meta_dict)
    return newdict


def combine_configs(configs: Iterable[dict]) -> dict:
    """
    Combine the given list of *unpacked* configs into a single config.
    Later configs in the list override earlier ones.

    :param configs: List of configs.
    :return: The combined config dictionary, without internal keys.
    """
    final_dict = reduce(update_and_expand_meta, configs, {})  # type: dict
    for key in TechgenDatabase.internal_keys():
        final_dict.pop(key, None)
    return final_dict


class TechgenDatabase:
    """
    A set of overridable configs.

    Order of precedence (in increasing order):
    - defaults (techgen/config/defaults.yml)
    - project (config files given on the command line)
    - runtime (settings made during the run, e.g. command line overrides)
    """

    def __init__(self) -> None:
        self.defaults = []  # type: List[dict]
        self.project = []  # type: List[dict]
        self._runtime = {}  # type: Dict[str, Any]

        self.__config_cache = {}  # type: dict
        self.__config_cache_dirty = False  # type: bool

        self.logger = TechgenLogging.context("config")  # type: TechgenLoggingContext

    @property
    def runtime(self) -> List[dict]:
        return [self._runtime]

    @staticmethod
    def internal_keys() -> set:
        """Internal keys that shouldn't show up in any final config."""
        return {_CONFIG_PATH_KEY}

    def get_config(self) -> dict:
        """
        Get the config of this database after all the overrides have been dealt with.
        """
        if self.__config_cache_dirty:
            self.__config_cache = combine_configs([{}] + self.defaults + self.project + self.runtime)
            self.__config_cache_dirty = False
        return self.__config_cache

    def get_database_json(self) -> str:
        """Get the combined database as a JSON string."""
        return json.dumps(self.get_config(), sort_keys=True, indent=4, separators=(',', ': '))

    def __getitem__(self, key: str) -> Any:
        """Alias for get_setting()."""
        return self.get_setting(key)

    def __contains__(self, item: str) -> bool:
        """Alias for has_setting()."""
        return self.has_setting(item)

    def get_setting(self, key: str, nullvalue: Any = None) -> Any:
        """
        Retrieve the given key.

        :param key: Desired key.
        :param nullvalue: Value to return out for nulls.
        :return: The given config
        """
        if key not in self.get_config():
            raise KeyError("Key " + key + " is missing")
        value = self.get_config()[key]
        return nullvalue if value is None else value

    def set_setting(self, key: str, value: Any) -> None:
        """
        Set the given key. The setting will be placed into the runtime dictionary.
        """
        self._runtime[key] = value
        self.__config_cache_dirty = True

    def has_setting(self, key: str) -> bool:
        return key in self.get_config()

    def get_settings_with_prefix(self, prefix: str) -> dict:
        """
        Get every setting under a prefix, repacked into a nested dictionary.
        e.g. prefix "techgen.techfile.header" -> {"process": ..., "author": ...}
        """
        real_prefix = prefix + "."
        flat = {k[len(real_prefix):]: v for k, v in self.get_config().items() if k.startswith(real_prefix)}
        return reverse_unpack(flat)

    def update_defaults(self, default_configs: List[dict]) -> None:
        self.defaults = default_configs
        self.__config_cache_dirty = True

    def update_project(self, project_config: List[dict]) -> None:
        self.project = project_config
        self.logger.debug("Using %d project config(s)" % len(project_config))
        self.__config_cache_dirty = True


def load_config_from_string(contents: str, is_yaml: bool, path: str = "unspecified") -> dict:
    """
    Load config from a string by loading it and unpacking it.

    :param contents: Contents of the config.
    :param is_yaml: True if the contents are yaml.
    :param path: Path to the folder/package where the config file is located.
    :return: Loaded config dictionary, unpacked.
    """
    loaded = load_yaml(contents) if is_yaml else json.loads(contents)
    if not isinstance(loaded, dict):
        raise ValueError("Config from %s must contain a mapping at the top level" % path)
    unpacked = unpack(loaded)
    unpacked[_CONFIG_PATH_KEY] = path
    return unpacked


def load_config_from_paths(config_paths: Iterable[str]) -> List[dict]:
    """
    Load configuration from a list of paths to config files (.json, .yml or .yaml).

    :param config_paths: Config file paths, in increasing order of precedence.
    :return: A list of loaded, unpacked configs.
    """
    configs = []  # type: List[dict]
    for config_path in config_paths:
        with open(config_path, "r") as f:
            contents = f.read()
        is_yaml = config_path.endswith(".yml") or config_path.endswith(".yaml")
        configs.append(load_config_from_string(contents, is_yaml, os.path.dirname(os.path.abspath(config_path))))
    return configs


def load_config_from_defaults(package: str) -> List[dict]:
    """
    Load the defaults.json and/or defaults.yml shipped inside a package.

    :param package: Package name, e.g. "techgen.config"
    :return: Loaded config dictionaries
    """
    package_path = importlib.resources.files(package)
    json_file = package_path / "defaults.json"
    yaml_file = package_path / "defaults.yml"
    config_list = []  # type: List[dict]
    if json_file.is_file():
        config_list.append(load_config_from_string(json_file.read_text(), False, str(package_path)))
    if yaml_file.is_file():
        config_list.append(load_config_from_string(yaml_file.read_text(), True, str(package_path)))
    return config_list
