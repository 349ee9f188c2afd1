#  Test helper code for techgen logging.
#
#  See LICENSE for licence details.

from typing import Callable, List

from .logging import FullMessage, TechgenLogging


class LoggingCaptureContext:
    """
    Capture everything logged through TechgenLogging while the context is active,
    with colours disabled. The previous settings and callbacks are restored on exit.
    """
    def __init__(self) -> None:
        self.old_enable_buffering = False  # type: bool
        self.old_enable_colour = True  # type: bool
        self.old_callbacks = []  # type: List[Callable[[FullMessage], None]]
        self.logs = []  # type: List[str]

    def log_contains(self, s: str) -> bool:
        """
        Check if the captured log contains the given string.
        :param s: String to check
        :return: True if found
        """
        return any(s in line for line in self.logs)

    def __enter__(self) -> "LoggingCaptureContext":
        self.old_enable_buffering = TechgenLogging.enable_buffering
        self.old_enable_colour = TechgenLogging.enable_colour
        self.old_callbacks = list(TechgenLogging.callbacks)
        TechgenLogging.enable_buffering = True
        TechgenLogging.enable_colour = False
        TechgenLogging.clear_callbacks()
        TechgenLogging.add_callback(TechgenLogging.callback_buffering)
        TechgenLogging.output_buffer.clear()
        return self

    def __exit__(self, type, value, traceback) -> bool:
        self.logs = list(TechgenLogging.output_buffer)
        TechgenLogging.output_buffer.clear()
        TechgenLogging.enable_buffering = self.old_enable_buffering
        TechgenLogging.enable_colour = self.old_enable_colour
        TechgenLogging.callbacks = self.old_callbacks
        # Propagate any exception raised inside the context.
        return type is None
