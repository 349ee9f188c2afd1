#  techgen logging code.
#
#  See LICENSE for licence details.

__all__ = ['TechgenFileLogger', 'TechgenLogging', 'TechgenLoggingContext', 'Level']

from .logging import TechgenFileLogger, TechgenLogging, TechgenLoggingContext, Level
