#  techgen logging code.
#
#  See LICENSE for licence details.

from enum import Enum
from typing import Callable, Iterable, List, NamedTuple, Type, Optional


class Level(Enum):
    """
    Logging levels.
    """
    # DEBUG - per-layer detail (merged values, skipped entries)
    # INFO - progress of the pipeline (files read, layers found, file written)
    # WARNING - suspicious data that does not stop the run (e.g. negative via thickness)
    # ERROR - a step failed but the caller decides whether to continue
    # FATAL - the run is aborted
    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3
    FATAL = 4


# Message including additional metadata such as level and context.
FullMessage = NamedTuple('FullMessage', [
    ('message', str),
    ('level', Level),
    ('context', List[str])
])


def with_default_callbacks(cls):
    cls.add_callback(cls.callback_print)
    cls.add_callback(cls.callback_buffering)
    return cls


class TechgenFileLogger:
    """Mirror log messages into a file."""

    def __init__(self, output_path: str, format_msg_callback: Optional[Callable[[FullMessage], str]] = None) -> None:
        """
        Open (append) the log file.

        :param output_path: Path of the log file.
        :param format_msg_callback: Optional message formatter. None to use TechgenLogging.build_log_message.
        """
        self._file = open(output_path, "a")
        self._format_msg_callback = format_msg_callback

    def __enter__(self) -> "TechgenFileLogger":
        return self

    def close(self) -> None:
        self._file.close()

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    @property
    def callback(self) -> Callable[[FullMessage], None]:
        """Callback suitable for TechgenLogging.add_callback."""

        def file_callback(fullmessage: FullMessage) -> None:
            if self._format_msg_callback is not None:
                self._file.write(self._format_msg_callback(fullmessage) + "\n")
            else:
                self._file.write(TechgenLogging.build_log_message(fullmessage) + "\n")

        return file_callback


@with_default_callbacks
class TechgenLogging:
    """Singleton which dispatches log messages to the registered callbacks.

    Use TechgenLoggingContext (via TechgenLogging.context()) to actually log.
    """

    enable_colour = True  # type: bool

    # Store printed messages in output_buffer instead of only printing them.
    enable_buffering = False  # type: bool

    # Print the context tag (e.g. "[lef] ...").
    enable_tag = True  # type: bool

    COLOUR_BLUE = "\033[96m"
    COLOUR_GREY = "\033[37m"
    COLOUR_YELLOW = "\033[33m"
    COLOUR_RED = "\033[91m"
    COLOUR_RED_BG = "\033[101m"
    COLOUR_CLEAR = "\033[0m"

    @classmethod
    def callback_print(cls, fullmessage: FullMessage) -> None:
        """Print a colour message to stdout."""
        print(cls.build_message(fullmessage))

    output_buffer = []  # type: List[str]

    @classmethod
    def callback_buffering(cls, fullmessage: FullMessage) -> None:
        """Append the message to output_buffer if buffering is enabled."""
        if not cls.enable_buffering:
            return
        cls.output_buffer.append(cls.build_message(fullmessage))

    @classmethod
    def build_log_message(cls, fullmessage: FullMessage) -> str:
        """Build a plain message for log files, without colour."""
        return "{context} {level}: {message}".format(context=cls.get_tag(fullmessage.context),
                                                     level=fullmessage.level.name,
                                                     message=fullmessage.message)

    callbacks = []  # type: List[Callable[[FullMessage], None]]

    @classmethod
    def clear_callbacks(cls) -> None:
        cls.callbacks = []

    @classmethod
    def add_callback(cls, callback: Callable[[FullMessage], None]) -> None:
        cls.callbacks.append(callback)

    @classmethod
    def reset_callbacks(cls) -> None:
        """Restore the default print and buffering callbacks."""
        cls.clear_callbacks()
        cls.add_callback(cls.callback_print)
        cls.add_callback(cls.callback_buffering)

    @classmethod
    def context(cls, new_context: str = "") -> "TechgenLoggingContext":
        """
        Create a new context.

        :param new_context: Context name. Leave blank to get the global context.
        """
        if new_context == "":
            return TechgenLoggingContext([], cls)
        else:
            return TechgenLoggingContext([new_context], cls)

    @classmethod
    def get_colour_escape(cls, level: Level) -> str:
        table = {
            Level.DEBUG: cls.COLOUR_GREY,
            Level.INFO: cls.COLOUR_BLUE,
            Level.WARNING: cls.COLOUR_YELLOW,
            Level.ERROR: cls.COLOUR_RED,
            Level.FATAL: cls.COLOUR_RED_BG
        }
        return table.get(level, "")

    @classmethod
    def log(cls, fullmessage: FullMessage) -> None:
        for callback in cls.callbacks:
            callback(fullmessage)

    @classmethod
    def build_message(cls, fullmessage: FullMessage) -> str:
        """Build a colour message."""
        context_tag = cls.get_tag(fullmessage.context)  # type: str

        output = ""  # type: str
        output += cls.get_colour_escape(fullmessage.level) if cls.enable_colour else ""
        if cls.enable_tag and context_tag != "":
            output += context_tag + " "
        output += fullmessage.message
        output += cls.COLOUR_CLEAR if cls.enable_colour else ""

        return output

    @staticmethod
    def get_tag(context: List[str]) -> str:
        """Tag for a context, e.g. ["techgen", "lef"] -> "[techgen] [lef]"."""
        if len(context) > 0:
            return " ".join("[%s]" % x for x in context)
        else:
            return "[<global>]"

    @classmethod
    def get_buffer(cls) -> Iterable[str]:
        """Get the current contents of the logging buffer and clear it."""
        if not cls.enable_buffering:
            raise ValueError("Buffering is not enabled")
        output = list(cls.output_buffer)
        cls.output_buffer = []
        return output


class TechgenLoggingContext:
    """
    Logging interface carrying a context, i.e. the list of strings naming where the
    message comes from, e.g. ["techgen", "lef"].
    """

    def __init__(self, context: List[str], logging_class: Type[TechgenLogging]) -> None:
        self._context = context  # type: List[str]
        self.logging_class = logging_class  # type: Type[TechgenLogging]

    def context(self, new_context: str) -> "TechgenLoggingContext":
        """
        Create a new subcontext from this context.
        """
        return TechgenLoggingContext(self._context + [new_context], self.logging_class)

    def debug(self, message: str) -> None:
        return self.log(message, Level.DEBUG)

    def info(self, message: str) -> None:
        return self.log(message, Level.INFO)

    def warning(self, message: str) -> None:
        return self.log(message, Level.WARNING)

    def error(self, message: str) -> None:
        return self.log(message, Level.ERROR)

    def fatal(self, message: str) -> None:
        return self.log(message, Level.FATAL)

    def log(self, message: str, level: Level) -> None:
        return self.logging_class.log(FullMessage(message, level, self._context))
