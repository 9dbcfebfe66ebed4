import logging

from graphql_todo_server.config import load_settings
from graphql_todo_server.database import Database
from graphql_todo_server.schema import schema
from graphql_todo_server.server import DEFAULT_HOST, GraphQLHTTPServer

logger = logging.getLogger("graphql_todo_server")


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s - %(levelname)s - %(message)s",
    )

    settings = load_settings()
    logger.info(f"ENV Mode: {settings.env}")

    with Database.from_settings(settings) as db:
        db.create_all()
        server = GraphQLHTTPServer(schema=schema, context_value={"db": db})
        server.run(host=DEFAULT_HOST, port=settings.app_port)


if __name__ == "__main__":
    main()
