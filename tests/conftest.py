import io

import pytest
from sqlalchemy.pool import StaticPool

from graphql_todo_server import Database, GraphQLHTTPServer, QueryLogger
from graphql_todo_server.schema import schema as todo_schema


@pytest.fixture
def sink():
    return io.StringIO()


@pytest.fixture
def query_logger(sink):
    return QueryLogger(sink=sink, colorize=False)


@pytest.fixture
def database(query_logger):
    db = Database(
        "sqlite://",
        enable_query_logging=True,
        query_logger=query_logger,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    db.create_all()
    yield db
    db.close()


@pytest.fixture
def schema():
    return todo_schema


@pytest.fixture
def server(schema, database, sink):
    server = GraphQLHTTPServer(schema=schema, context_value={"db": database})
    # Drop the trace lines written while creating the tables.
    sink.seek(0)
    sink.truncate()
    return server
