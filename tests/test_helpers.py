from graphql import ExecutionResult, GraphQLError

from graphql_todo_server.helpers import HttpQueryError, encode_execution_results, json_encode
from graphql_todo_server.server import GraphQLHTTPServer


class TestHelpers:
    def test_json_encode_is_compact(self):
        assert json_encode({"data": {"todos": [1, 2]}}) == '{"data":{"todos":[1,2]}}'

    def test_encode_execution_results_defaults_to_json(self):
        result, status_code = encode_execution_results([ExecutionResult(data={"todos": []})])

        assert result == '{"data":{"todos":[]}}'
        assert status_code == 200

    def test_error_without_path_is_bad_request(self):
        result, status_code = encode_execution_results(
            [ExecutionResult(data=None, errors=[GraphQLError("Syntax Error")])],
            encode=lambda x: x,
        )

        assert status_code == 400
        assert result == {"errors": [{"message": "Syntax Error"}]}

    def test_error_response(self):
        response = GraphQLHTTPServer.error_response(
            HttpQueryError(405, "GraphQL only supports GET and POST requests.", headers={"Allow": "GET, POST"})
        )

        assert response.status_code == 405
        assert response.headers["allow"] == "GET, POST"
        assert response.body == b'{"errors":[{"message":"GraphQL only supports GET and POST requests."}]}'
