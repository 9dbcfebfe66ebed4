from graphql_todo_server.database import Database
from graphql_todo_server.query_logger import QueryEvent, QueryLogger, StatementExecutionError
from graphql_todo_server.schema import schema
from graphql_todo_server.server import GraphQLHTTPServer

__all__ = [
    "Database",
    "GraphQLHTTPServer",
    "QueryEvent",
    "QueryLogger",
    "StatementExecutionError",
    "schema",
]
