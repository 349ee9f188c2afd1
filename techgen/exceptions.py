#  Exceptions raised by techgen.
#
#  See LICENSE for licence details.

__all__ = ['TechgenError', 'ParseError', 'ConfigError']


class TechgenError(Exception):
    """Base class for all techgen errors."""


class ParseError(TechgenError):
    """Raised when an input file or field cannot be decoded."""


class ConfigError(TechgenError):
    """Raised when the configured layer stack or settings are unusable."""
