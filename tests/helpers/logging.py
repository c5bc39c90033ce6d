import threading

from tasklane.logging import Logger, LogLevel


class LoggerStub(Logger):
    """
    Logger that discards everything.
    """

    def log(self, _level: LogLevel = LogLevel.INFO, *args, **kwargs) -> None:
        pass


class RecordingLogger(Logger):
    """
    Logger that keeps every string message with its level, for assertions.
    """

    def __init__(self):
        self.records: list[tuple[LogLevel, str]] = []
        self._lock = threading.Lock()

    def log(self, level: LogLevel = LogLevel.INFO, *args, **kwargs) -> None:
        text = " ".join(str(arg) for arg in args)
        with self._lock:
            self.records.append((level, text))

    def messages(self, level: LogLevel | None = None) -> list[str]:
        with self._lock:
            return [text for lvl, text in self.records if level is None or lvl == level]

    def text(self) -> str:
        return "\n".join(self.messages())


logger_stub = LoggerStub()
