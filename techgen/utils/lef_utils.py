#  lef_utils.py
#  Read layer heights and thicknesses from a technology LEF.
#
#  See LICENSE for licence details.

from enum import Enum
from typing import Callable, Dict, Iterable, List, NamedTuple, Optional

from techgen.logging import TechgenLogging

__all__ = ['LEFUtils', 'LEFTechParser', 'LEFParseMode', 'LefEntry', 'LEFTechFile']

# A LAYER block from the LEF. type is only used for diagnostics.
LefEntry = NamedTuple('LefEntry', [
    ('name', str),
    ('type', str),
    ('height', float),
    ('thickness', float)
])

LEFTechFile = NamedTuple('LEFTechFile', [
    ('version', float),
    ('divider_char', str),
    ('layers', List[LefEntry])
])


class LEFParseMode(Enum):
    """Section of the LEF the parser is currently in."""
    IDLE = "idle"
    UNITS = "units"
    LAYER = "layer"
    LAYER_IGNORE = "layer_ignore"
    VIA_IGNORE = "via_ignore"


def _parse_float(token: str, default: float) -> float:
    try:
        return float(token)
    except ValueError:
        return default


class LEFTechParser:
    """
    Line-oriented state machine over a technology LEF.

    Feed it one line at a time with feed_line(); the result is available from
    tech_file once all lines are fed. Unknown statements are ignored and
    unparsable numbers keep their 0.0 default, so this never raises.
    """

    def __init__(self, layers: Iterable[str]) -> None:
        self.layers = set(layers)
        self.mode = LEFParseMode.IDLE  # type: LEFParseMode
        self.version = 0.0  # type: float
        self.divider_char = ""  # type: str
        self.entries = []  # type: List[LefEntry]

        # Fields of the LAYER block being read.
        self._name = ""  # type: str
        self._type = ""  # type: str
        self._height = 0.0  # type: float
        self._thickness = 0.0  # type: float

        self.logger = TechgenLogging.context("lef")

        self._handlers = {
            LEFParseMode.IDLE: self._idle,
            LEFParseMode.UNITS: self._until_end,
            LEFParseMode.LAYER: self._layer,
            LEFParseMode.LAYER_IGNORE: self._until_end,
            LEFParseMode.VIA_IGNORE: self._until_end,
        }  # type: Dict[LEFParseMode, Callable[[LEFParseMode, List[str]], LEFParseMode]]

    @property
    def tech_file(self) -> LEFTechFile:
        return LEFTechFile(version=self.version, divider_char=self.divider_char, layers=list(self.entries))

    def feed_line(self, line: str) -> None:
        if "#" in line:
            line = line[:line.index("#")]
        tokens = line.split()
        if len(tokens) == 0:
            return
        self.mode = self.transition(self.mode, tokens)

    def transition(self, mode: LEFParseMode, tokens: List[str]) -> LEFParseMode:
        """
        Apply one tokenized statement in the given mode.

        :param mode: Current mode
        :param tokens: Whitespace-separated tokens of the line, at least one
        :return: The next mode
        """
        return self._handlers[mode](mode, tokens)

    def _idle(self, mode: LEFParseMode, tokens: List[str]) -> LEFParseMode:
        keyword = tokens[0]
        arg = tokens[1] if len(tokens) > 1 else None  # type: Optional[str]
        if keyword == "VERSION" and arg is not None:
            self.version = _parse_float(arg, self.version)
            self.logger.debug("Found version: {v}".format(v=self.version))
        elif keyword == "DIVIDERCHAR" and arg is not None:
            self.divider_char = arg
        elif keyword == "UNITS":
            return LEFParseMode.UNITS
        elif keyword == "LAYER" and arg is not None:
            if arg in self.layers:
                self.logger.debug("Found layer: {n}".format(n=arg))
                self._name, self._type, self._height, self._thickness = arg, "", 0.0, 0.0
                return LEFParseMode.LAYER
            return LEFParseMode.LAYER_IGNORE
        elif keyword in ("VIA", "VIARULE"):
            return LEFParseMode.VIA_IGNORE
        return mode

    def _layer(self, mode: LEFParseMode, tokens: List[str]) -> LEFParseMode:
        keyword = tokens[0]
        arg = tokens[1] if len(tokens) > 1 else None  # type: Optional[str]
        if keyword == "END":
            self.entries.append(LefEntry(name=self._name, type=self._type, height=self._height,
                                         thickness=self._thickness))
            return LEFParseMode.IDLE
        if arg is None:
            return mode
        if keyword == "TYPE":
            self._type = arg
        elif keyword == "THICKNESS":
            self._thickness = _parse_float(arg, self._thickness)
        elif keyword == "HEIGHT":
            self._height = _parse_float(arg, self._height)
        return mode

    def _until_end(self, mode: LEFParseMode, tokens: List[str]) -> LEFParseMode:
        # UNITS, ignored LAYERs and VIA/VIARULE blocks are skipped up to their END.
        if tokens[0] == "END":
            return LEFParseMode.IDLE
        return mode


class LEFUtils:
    @staticmethod
    def parse_tech(source: str, layers: Iterable[str]) -> LEFTechFile:
        """
        Parse the LAYER heights and thicknesses out of a technology LEF.

        :param source: LEF file source
        :param layers: Names of the LAYER blocks to keep
        :return: Version, divider character and the kept layers in file order
        """
        parser = LEFTechParser(layers)
        for line in source.splitlines():
            parser.feed_line(line)
        return parser.tech_file

    @staticmethod
    def get_tech(path: str, layers: Iterable[str]) -> LEFTechFile:
        """
        Read a technology LEF from disk. Raises OSError if it cannot be read.

        :param path: Path to the LEF
        :param layers: Names of the LAYER blocks to keep
        """
        parser = LEFTechParser(layers)
        # Keywords are ASCII; undecodable bytes in comments are replaced.
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            for line in f:
                parser.feed_line(line)
        tech = parser.tech_file
        parser.logger.info("Read {n} layer(s) from {p}".format(n=len(tech.layers), p=path))
        return tech
