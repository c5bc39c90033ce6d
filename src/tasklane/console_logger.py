from rich.console import Console

from tasklane.logging import Logger, LogLevel
from tasklane.redaction import SecretRedactor


class ConsoleLogger(Logger):
    """Console-based logger implementation using Rich for formatting.

    Filters log messages based on the current log level. Messages with severity
    lower than the current level are suppressed. String arguments pass through the
    optional secret redactor before printing.
    """

    def __init__(
        self,
        console: Console,
        level: LogLevel = LogLevel.INFO,
        redactor: SecretRedactor | None = None,
    ) -> None:
        """Initialize the console logger.

        Args:
            console: Rich Console instance to use for output
            level: Initial log level (default: INFO)
            redactor: Optional redactor applied to string arguments
        """
        self._console = console
        self._level = level
        self._redactor = redactor

    @property
    def level(self) -> LogLevel:
        return self._level

    def set_redactor(self, redactor: SecretRedactor | None) -> None:
        self._redactor = redactor

    def log(self, level: LogLevel = LogLevel.INFO, *args, **kwargs) -> None:
        """Log a message to the console if it meets the current level threshold.

        Args:
            level: The severity level of this message (default: INFO)
            *args: Positional arguments passed to Rich Console.print()
            **kwargs: Keyword arguments passed to Rich Console.print()
        """
        if self._level.value < level.value:
            return
        if self._redactor:
            args = tuple(
                self._redactor.redact(arg) if isinstance(arg, str) else arg
                for arg in args
            )
        self._console.print(*args, **kwargs)

