import sys
import time
import logging
import threading

from datetime import datetime, timedelta
from typing import Any, Dict, List, NamedTuple, Optional, TextIO

from rich.color import ColorSystem
from rich.console import Console
from rich.style import Style as RichStyle

logger = logging.getLogger(__name__)

TAG = "[sql]"

OPERATION_WIDTH = 16
DURATION_WIDTH = 10


class Style(NamedTuple):
    """Label colors, named the way rich names the 16 standard colors."""

    background: Optional[str] = None
    foreground: Optional[str] = None

    def rich(self) -> RichStyle:
        return RichStyle(color=self.foreground, bgcolor=self.background)


class Segment(NamedTuple):
    text: str
    style: Optional[Style] = None


OPERATION_STYLES: Dict[str, Style] = {
    "SELECT": Style("green", "bright_white"),
    "INSERT": Style("blue", "bright_white"),
    "UPDATE": Style("yellow", "bright_black"),
    "DELETE": Style("magenta", "bright_white"),
}

DEFAULT_STYLE = Style("white", "bright_black")

ERROR_STYLE = Style("red")


def one_line(text: str) -> str:
    return " ".join(text.split())


class StatementExecutionError(Exception):
    """A failed statement as seen by the query logger.

    The access layer builds one of these from whatever the driver raised, so
    the logger never has to know about driver exception types.
    """

    def __init__(self, type_name: str, message: str):
        super().__init__(f"{type_name}: {message}")
        self.type_name = type_name
        self.message = message

    @classmethod
    def from_exception(cls, error: BaseException) -> "StatementExecutionError":
        # SQLAlchemy wraps DBAPI errors; report the driver's own error.
        original = getattr(error, "orig", None) or error
        return cls(type_name(original), one_line(str(original)))


class QueryEvent:
    """One statement execution, created right before dispatch.

    ``start_time`` is the wall clock time shown in the trace line and
    ``started`` the monotonic reading the duration is measured from.
    ``error`` stays ``None`` unless the statement failed.
    """

    def __init__(
        self,
        operation: str,
        query: str,
        start_time: Optional[datetime] = None,
        parameters: Any = None,
        error: Optional[BaseException] = None,
        started: Optional[float] = None,
    ):
        self.operation = operation
        self.query = query
        self.start_time = start_time if start_time is not None else datetime.now()
        self.started = started if started is not None else time.perf_counter()
        self.parameters = parameters
        self.error = error

    def __repr__(self):
        return (
            f"QueryEvent(operation={self.operation!r}, query={self.query!r}, "
            f"start_time={self.start_time!r}, error={self.error!r})"
        )


def type_name(error: BaseException) -> str:
    cls = type(error)
    if cls.__module__ in ("builtins", "__main__"):
        return cls.__qualname__
    return f"{cls.__module__}.{cls.__qualname__}"


def describe_error(error: BaseException) -> str:
    if isinstance(error, StatementExecutionError):
        return one_line(f"{error.type_name}: {error.message}")
    return one_line(f"{type_name(error)}: {error}")


def style_for(operation: str) -> Style:
    return OPERATION_STYLES.get(operation, DEFAULT_STYLE)


def _decimal(whole: int, fraction: int, digits: int) -> str:
    if not fraction:
        return str(whole)
    return f"{whole}." + str(fraction).rjust(digits, "0").rstrip("0")


def format_duration(elapsed: timedelta) -> str:
    """Render ``elapsed`` rounded to the microsecond, e.g. ``1.2ms``."""
    micros = round(elapsed / timedelta(microseconds=1))
    if micros == 0:
        return "0s"

    sign = "-" if micros < 0 else ""
    micros = abs(micros)

    if micros < 1000:
        return f"{sign}{micros}µs"
    if micros < 1000000:
        return sign + _decimal(micros // 1000, micros % 1000, 3) + "ms"

    seconds, fraction = divmod(micros, 1000000)
    minutes, seconds = divmod(seconds, 60)
    hours, minutes = divmod(minutes, 60)

    text = _decimal(seconds, fraction, 6) + "s"
    if hours:
        text = f"{hours}h{minutes}m" + text
    elif minutes:
        text = f"{minutes}m" + text
    return sign + text


def compose(event: QueryEvent, now: datetime, elapsed: timedelta) -> List[Segment]:
    """Build the segments of one trace line without applying any styling."""
    elapsed = max(elapsed, timedelta(0))

    segments = [
        Segment(TAG),
        Segment(now.strftime(" %H:%M:%S.") + f"{now.microsecond // 1000:03d} "),
        Segment(f" {event.operation:<{OPERATION_WIDTH}} ", style_for(event.operation)),
        Segment(f" {format_duration(elapsed):>{DURATION_WIDTH}} "),
        Segment(one_line(event.query)),
    ]

    if event.error is not None:
        segments.append(Segment("\t"))
        segments.append(Segment(f" {describe_error(event.error)} ", ERROR_STYLE))

    return segments


def render(segments: List[Segment], colorize: bool = True) -> str:
    parts = []
    for segment in segments:
        if colorize and segment.style is not None:
            parts.append(segment.style.rich().render(segment.text, color_system=ColorSystem.STANDARD))
        else:
            parts.append(segment.text)
    return " ".join(parts)


def supports_color(sink: TextIO) -> bool:
    """Whether rich would color output to ``sink`` (TTY, NO_COLOR, TERM)."""
    try:
        console = Console(file=sink)
        return console.color_system is not None and not console.no_color
    except ValueError:
        # closed file
        return False


class QueryLogger:
    """Prints one line per executed statement to ``sink``.

    ``before_execute`` and ``after_execute`` are called by the access layer
    around every statement. Writing is best effort: a failure to format or
    write a line is dropped and never reaches the code running the query.
    """

    clock = staticmethod(datetime.now)
    timer = staticmethod(time.perf_counter)

    def __init__(self, sink: Optional[TextIO] = None, colorize: Optional[bool] = None):
        self.sink = sink if sink is not None else sys.stderr
        if colorize is None:
            colorize = supports_color(self.sink)
        self.colorize = colorize
        self._lock = threading.Lock()

    def before_execute(self, context: Any, event: QueryEvent) -> Any:
        return context

    def after_execute(self, context: Any, event: QueryEvent) -> None:
        try:
            elapsed = timedelta(seconds=self.timer() - event.started)
            line = render(compose(event, self.clock(), elapsed), colorize=self.colorize)
            self.write(line + "\n")
        except Exception:  # noqa: BLE001
            logger.debug("Dropped query log line", exc_info=True)

    def write(self, text: str) -> None:
        with self._lock:
            self.sink.write(text)
            flush = getattr(self.sink, "flush", None)
            if flush is not None:
                flush()
