#  Load YAML config files into JSON-compatible dictionaries.
#
#  See LICENSE for licence details.

import json

import yaml


def load_yaml(yaml_str: str) -> dict:
    """
    Load a YAML config as a JSON-compatible dictionary.

    The YAML is parsed with the safe loader and passed through JSON so that only
    plain JSON types (no dates, no non-string keys) reach the config database.

    :param yaml_str: A string containing the YAML document.
    :return: The document as a dictionary. An empty document yields {}.
    """
    obj = json.loads(json.dumps(yaml.safe_load(yaml_str), default=str))
    if obj is None:
        # A YAML file with nothing (except comments) loads as None.
        return {}
    if not isinstance(obj, dict):
        raise ValueError("Config files must contain a mapping at the top level")
    return obj
