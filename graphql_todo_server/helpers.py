import json

from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from graphql import (
    ExecutionResult,
    GraphQLError,
    GraphQLSchema,
    OperationType,
    execute,
    get_operation_ast,
    parse,
    validate,
)
from graphql.error import GraphQLSyntaxError


class HttpQueryError(Exception):
    def __init__(
        self,
        status_code: int,
        message: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.headers = headers


class RequestParams:
    def __init__(
        self,
        query: Optional[str],
        variables: Optional[Dict[str, Any]],
        operation_name: Optional[str],
    ):
        self.query = query
        self.variables = variables
        self.operation_name = operation_name

    def __repr__(self):
        return (
            f"RequestParams(query={self.query!r}, variables={self.variables!r}, "
            f"operation_name={self.operation_name!r})"
        )


def json_encode(data: Union[Dict, List]) -> str:
    return json.dumps(data, separators=(",", ":"))


def load_json_body(data: str) -> Union[Dict, List]:
    try:
        return json.loads(data)
    except ValueError:
        raise HttpQueryError(400, "POST body sent invalid JSON.")


def load_json_variables(variables: Any) -> Optional[Dict[str, Any]]:
    if variables and isinstance(variables, str):
        try:
            return json.loads(variables)
        except ValueError:
            raise HttpQueryError(400, "Variables are invalid JSON.")
    return variables


def get_graphql_params(data: Dict[str, Any], query_data: Dict[str, Any]) -> RequestParams:
    query = data.get("query") or query_data.get("query")
    variables = data.get("variables") or query_data.get("variables")
    operation_name = data.get("operationName") or query_data.get("operationName")

    return RequestParams(query, load_json_variables(variables), operation_name)


def run_http_query(
    schema: GraphQLSchema,
    request_method: str,
    data: Union[Dict, List[Dict]],
    query_data: Optional[Dict[str, Any]] = None,
    batch_enabled: bool = False,
    **execute_options,
) -> Tuple[List[Optional[ExecutionResult]], List[RequestParams]]:
    """Execute the GraphQL operation(s) carried by an HTTP request.

    ``data`` is the parsed request body and ``query_data`` the query string.
    Returns the execution results with the request parameters they came
    from. Request-level problems raise :class:`HttpQueryError`.
    """
    if request_method not in ("get", "post"):
        raise HttpQueryError(
            405,
            "GraphQL only supports GET and POST requests.",
            headers={"Allow": "GET, POST"},
        )

    is_batch = isinstance(data, list)
    is_get_request = request_method == "get"

    if not is_batch:
        if not isinstance(data, dict):
            raise HttpQueryError(400, f"GraphQL params should be a dict. Received {data!r}.")
        data = [data]
    elif not batch_enabled:
        raise HttpQueryError(400, "Batch GraphQL requests are not enabled.")

    if not data:
        raise HttpQueryError(400, "Received an empty list in the batch request.")

    extra_data: Dict[str, Any] = {}
    # The query string only applies to single requests.
    if not is_batch:
        extra_data = dict(query_data or {})

    all_params = [get_graphql_params(entry, extra_data) for entry in data]

    results = [
        get_response(schema, params, allow_only_query=is_get_request, **execute_options)
        for params in all_params
    ]
    return results, all_params


def get_response(
    schema: GraphQLSchema,
    params: RequestParams,
    allow_only_query: bool = False,
    **execute_options,
) -> Optional[ExecutionResult]:
    if not params.query:
        raise HttpQueryError(400, "Must provide query string.")

    try:
        document = parse(params.query)
    except GraphQLSyntaxError as error:
        return ExecutionResult(data=None, errors=[error])

    validation_errors = validate(schema, document)
    if validation_errors:
        return ExecutionResult(data=None, errors=validation_errors)

    if allow_only_query:
        operation_ast = get_operation_ast(document, params.operation_name)
        if operation_ast and operation_ast.operation != OperationType.QUERY:
            raise HttpQueryError(
                405,
                f"Can only perform a {operation_ast.operation.value} operation"
                " from a POST request.",
                headers={"Allow": "POST"},
            )

    return execute(
        schema,
        document,
        variable_values=params.variables,
        operation_name=params.operation_name,
        **execute_options,
    )


def format_execution_result(
    execution_result: Optional[ExecutionResult],
    format_error: Callable[[GraphQLError], Dict[str, Any]],
) -> Tuple[Optional[Dict[str, Any]], int]:
    status_code = 200
    if execution_result is None:
        return None, status_code

    response: Dict[str, Any] = {}
    if execution_result.errors:
        response["errors"] = [format_error(e) for e in execution_result.errors]
        # Syntax and validation errors have no path; execution never started.
        if any(not error.path for error in execution_result.errors):
            status_code = 400
            return response, status_code
    response["data"] = execution_result.data
    return response, status_code


def default_format_error(error: GraphQLError) -> Dict[str, Any]:
    return error.formatted


def encode_execution_results(
    execution_results: List[Optional[ExecutionResult]],
    format_error: Callable[[GraphQLError], Dict[str, Any]] = default_format_error,
    is_batch: bool = False,
    encode: Callable[[Any], Any] = json_encode,
) -> Tuple[Any, int]:
    responses = [format_execution_result(result, format_error) for result in execution_results]
    result, status_codes = zip(*responses)
    status_code = max(status_codes)

    if not is_batch:
        result = result[0]

    return encode(result), status_code
