import logging

from contextlib import contextmanager
from typing import Any, Iterator, Optional, Union

from sqlalchemy import create_engine, event
from sqlalchemy.engine import URL, Connection, Engine, make_url

from graphql_todo_server.config import Settings
from graphql_todo_server.models import metadata
from graphql_todo_server.query_logger import (
    OPERATION_WIDTH,
    QueryEvent,
    QueryLogger,
    StatementExecutionError,
)

logger = logging.getLogger(__name__)

_PENDING = "query_logger_events"


def build_url(settings: Settings) -> URL:
    if settings.database_url:
        return make_url(settings.database_url)

    return URL.create(
        "postgresql+psycopg2",
        username=settings.db_user or None,
        password=settings.db_pass or None,
        host=settings.db_host or None,
        port=settings.db_port,
        database=settings.db_name or None,
    )


def operation_of(statement: str, context: Any = None) -> str:
    """Return the kind of statement being executed.

    Compiled SQLAlchemy constructs declare what they are; raw SQL falls back
    to its first keyword.
    """
    if context is not None and getattr(context, "compiled", None) is not None:
        if context.isinsert:
            return "INSERT"
        if context.isupdate:
            return "UPDATE"
        if context.isdelete:
            return "DELETE"
        if getattr(context.compiled.statement, "is_select", False):
            return "SELECT"

    words = statement.split(None, 1)
    if not words:
        return ""
    return words[0][:OPERATION_WIDTH]


class Database:
    """Owns the engine for the lifetime of the process.

    Construct it once at startup, hand it to whatever needs the database and
    close it on the way out (or use it as a context manager).
    """

    def __init__(
        self,
        url: Union[str, URL],
        enable_query_logging: bool = False,
        query_logger: Optional[QueryLogger] = None,
        **engine_options,
    ):
        self.url = make_url(url)
        self.engine: Engine = create_engine(self.url, **engine_options)
        self.query_logger: Optional[QueryLogger] = None

        if enable_query_logging:
            self.attach(query_logger if query_logger is not None else QueryLogger())

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "Database":
        url = build_url(settings)
        options = {}
        if url.get_backend_name() == "postgresql":
            timeout = int(settings.db_timeout)
            options["connect_args"] = {
                "connect_timeout": timeout,
                "sslmode": "disable",
                "options": f"-c statement_timeout={timeout * 1000}",
            }
        options.update(kwargs)
        return cls(url, enable_query_logging=settings.enable_query_logging, **options)

    def attach(self, query_logger: QueryLogger) -> None:
        if self.query_logger is not None:
            raise ValueError("A query logger is already attached.")

        self.query_logger = query_logger
        event.listen(self.engine, "before_cursor_execute", self._before_cursor_execute)
        event.listen(self.engine, "after_cursor_execute", self._after_cursor_execute)
        event.listen(self.engine, "handle_error", self._handle_error)

    def _before_cursor_execute(self, conn, cursor, statement, parameters, context, executemany):
        query_event = QueryEvent(
            operation=operation_of(statement, context),
            query=statement,
            parameters=parameters,
        )
        hook_context = self.query_logger.before_execute(context, query_event)
        conn.info.setdefault(_PENDING, []).append((hook_context, query_event))

    def _after_cursor_execute(self, conn, cursor, statement, parameters, context, executemany):
        pending = conn.info.get(_PENDING)
        if not pending:
            return
        hook_context, query_event = pending.pop()
        self.query_logger.after_execute(hook_context, query_event)

    def _handle_error(self, exception_context):
        conn = exception_context.connection
        pending = conn.info.get(_PENDING) if conn is not None else None

        if pending:
            hook_context, query_event = pending.pop()
        elif exception_context.statement is not None:
            # Failed before reaching the cursor, e.g. while binding parameters.
            statement = exception_context.statement
            hook_context = exception_context.execution_context
            query_event = QueryEvent(
                operation=operation_of(statement, hook_context),
                query=statement,
                parameters=exception_context.parameters,
            )
        else:
            return

        query_event.error = StatementExecutionError.from_exception(
            exception_context.original_exception
        )
        self.query_logger.after_execute(hook_context, query_event)

    @contextmanager
    def connect(self) -> Iterator[Connection]:
        """Yield a connection inside a transaction, committed on success."""
        with self.engine.begin() as conn:
            yield conn

    def create_all(self) -> None:
        metadata.create_all(self.engine)

    def close(self) -> None:
        logger.debug(f"Disposing engine for {self.url.render_as_string(hide_password=True)}")
        self.engine.dispose()

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()
