from rich.console import Console
from rich.text import Text

from cmakelite.logging import Logger, LogLevel

# Levels that get a tag in front of the message
_LEVEL_TAGS = {
    LogLevel.FATAL: Text("fatal:", style="bold red"),
    LogLevel.ERROR: Text("error:", style="bold red"),
    LogLevel.WARN: Text("warning:", style="bold yellow"),
}


class ConsoleLogger(Logger):
    """Logger that prints Rich renderables to a console.

    Messages less severe than the current level are dropped. Warnings and
    errors are tagged with their level so they stand out from resolved values
    when both go to a terminal.
    """

    def __init__(self, console: Console, level: LogLevel = LogLevel.INFO) -> None:
        self._console = console
        self._levels = [level]

    @property
    def level(self) -> LogLevel:
        return self._levels[-1]

    def is_enabled(self, level: LogLevel) -> bool:
        return self.level.value >= level.value

    def log(self, level: LogLevel = LogLevel.INFO, *args, **kwargs) -> None:
        """Print args with Console.print() if level passes the current threshold.

        Keyword arguments such as ``markup=False`` are passed through; the
        level tag is a styled Text and is unaffected by them.
        """
        if not self.is_enabled(level):
            return
        tag = _LEVEL_TAGS.get(level)
        if tag is not None:
            args = (tag, *args)
        self._console.print(*args, **kwargs)

    def push_level(self, level: LogLevel) -> None:
        self._levels.append(level)

    def pop_level(self) -> LogLevel:
        """Pop the current log level and return to the previous level.

        Raises:
            RuntimeError: If attempting to pop the base (initial) log level
        """
        if len(self._levels) <= 1:
            raise RuntimeError("Cannot pop the base log level")
        return self._levels.pop()
