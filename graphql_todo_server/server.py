import os
import copy
import json
import logging

from typing import Any, Callable, Dict, List, Optional

from graphql import GraphQLError
from graphql.type.schema import GraphQLSchema
from starlette.applications import Starlette
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import HTMLResponse, JSONResponse, PlainTextResponse, Response
from starlette.routing import Route
from starlette.testclient import TestClient

from json import JSONDecodeError

from graphql_todo_server.helpers import (
    HttpQueryError,
    encode_execution_results,
    load_json_body,
    run_http_query,
)
import uvicorn

logger = logging.getLogger(__name__)

graphiql_dir = os.path.join(os.path.dirname(__file__), "graphiql")

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8081


class GraphQLHTTPServer:
    def __init__(
        self,
        schema: GraphQLSchema,
        root_value: Any = None,
        middleware: Optional[List[Callable[[Callable, Any], Any]]] = None,
        context_value: Optional[Dict[str, Any]] = None,
        serve_graphiql: bool = True,
        graphiql_default_query: Optional[str] = None,
        graphql_path: str = "/query",
        graphiql_path: str = "/",
        health_path: Optional[str] = None,
        batch_enabled: bool = False,
    ):
        if middleware is None:
            middleware = []

        self.schema = schema
        self.root_value = root_value
        self.middleware = middleware
        self.context_value = context_value if context_value is not None else {}
        self.serve_graphiql = serve_graphiql
        self.graphiql_default_query = graphiql_default_query
        self.graphql_path = graphql_path
        self.graphiql_path = graphiql_path
        self.health_path = health_path
        self.batch_enabled = batch_enabled

        routes = []
        if health_path:
            routes.append(Route(health_path, self.health_check, methods=["GET"]))
        if serve_graphiql:
            routes.append(Route(graphiql_path, self.graphiql, methods=["GET"]))
        routes.append(Route(graphql_path, self.dispatch, methods=["GET", "POST"]))

        self.app = Starlette(routes=routes)

    @staticmethod
    def format_error(error: GraphQLError) -> Dict[str, Any]:
        return error.formatted

    async def dispatch(self, request: Request) -> Response:
        try:
            request_method = request.method.lower()

            if request_method == "get" and self.should_serve_graphiql(request=request):
                return self.graphiql_response()

            data = await self.parse_body(request=request)

            context_value = copy.copy(self.context_value)
            context_value["request"] = request

            execution_results, all_params = await run_in_threadpool(
                run_http_query,
                self.schema,
                request_method,
                data,
                query_data=dict(request.query_params),
                batch_enabled=self.batch_enabled,
                root_value=self.root_value,
                middleware=self.middleware,
                context_value=context_value,
            )
            result, status_code = encode_execution_results(
                execution_results,
                format_error=self.format_error,
                is_batch=isinstance(data, list),
                encode=lambda x: x,
            )

            return JSONResponse(
                result,
                status_code=status_code,
            )

        except HttpQueryError as e:
            return self.error_response(e)

    async def graphiql(self, request: Request) -> Response:
        return self.graphiql_response()

    def graphiql_response(self) -> HTMLResponse:
        graphiql_path = os.path.join(graphiql_dir, "index.html")

        if self.graphiql_default_query:
            default_query = json.dumps(self.graphiql_default_query)
        else:
            default_query = '""'

        with open(graphiql_path, "r") as f:
            html_content = f.read()
        html_content = html_content.replace("DEFAULT_QUERY", default_query)
        html_content = html_content.replace("GRAPHQL_ENDPOINT", json.dumps(self.graphql_path))

        return HTMLResponse(html_content)

    async def health_check(self, request: Request) -> Response:
        return PlainTextResponse("OK")

    @staticmethod
    def error_response(e: HttpQueryError) -> JSONResponse:
        return JSONResponse(
            {"errors": [{"message": str(e.message)}]},
            status_code=e.status_code,
            headers=e.headers,
        )

    async def parse_body(self, request: Request):
        content_type = request.headers.get("Content-Type", "").split(";")[0].strip()

        if content_type == "application/graphql":
            body_bytes = await request.body()
            return {"query": body_bytes.decode("utf8")}

        elif content_type == "application/json":
            try:
                return await request.json()
            except JSONDecodeError as e:
                raise HttpQueryError(400, f"Unable to parse JSON body: {e}")

        elif content_type in (
            "application/x-www-form-urlencoded",
            "multipart/form-data",
        ):
            form_data = await request.form()
            return {k: v for k, v in form_data.items()}

        body_bytes = await request.body()
        if body_bytes:
            try:
                return load_json_body(body_bytes.decode("utf8"))
            except (HttpQueryError, UnicodeDecodeError):
                return {"query": body_bytes.decode("utf8")}

        return {}

    def should_serve_graphiql(self, request: Request):

        if not self.serve_graphiql:
            return False

        if "raw" in request.query_params:
            return False

        accept_header = request.headers.get("accept", "").lower()

        if "text/html" in accept_header:
            if "application/json" in accept_header:
                return accept_header.find("text/html") < accept_header.find(
                    "application/json"
                )
            return True

        return False

    def client(self):
        return TestClient(self.app)

    def run(
        self,
        host: Optional[str] = DEFAULT_HOST,
        port: Optional[int] = DEFAULT_PORT,
        **kwargs,
    ):
        logger.info(f"connect to http://localhost:{port}/ for GraphQL playground")
        uvicorn.run(self.app, host=host, port=port, **kwargs)
