from uuid import uuid4

from graphql import (
    GraphQLArgument,
    GraphQLBoolean,
    GraphQLError,
    GraphQLField,
    GraphQLID,
    GraphQLInputField,
    GraphQLInputObjectType,
    GraphQLList,
    GraphQLNonNull,
    GraphQLObjectType,
    GraphQLSchema,
    GraphQLString,
)
from sqlalchemy import delete, insert, select, update

from graphql_todo_server.models import todos, users


def _database(info):
    return info.context["db"]


def _todo_id(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise GraphQLError(f"Invalid todo id: {value!r}")


def _get_todo(conn, todo_id):
    row = conn.execute(select(todos).where(todos.c.id == todo_id)).mappings().first()
    return dict(row) if row is not None else None


def _ensure_user(conn, user_id, name=None):
    row = conn.execute(select(users).where(users.c.id == user_id)).mappings().first()
    if row is not None:
        return dict(row)
    user = {"id": user_id, "name": name or f"user {user_id}"}
    conn.execute(insert(users).values(**user))
    return user


def resolve_todos(root, info):
    with _database(info).connect() as conn:
        rows = conn.execute(select(todos).order_by(todos.c.id)).mappings().all()
    return [dict(row) for row in rows]


def resolve_todo(root, info, id):
    with _database(info).connect() as conn:
        return _get_todo(conn, _todo_id(id))


def resolve_users(root, info):
    with _database(info).connect() as conn:
        rows = conn.execute(select(users).order_by(users.c.name)).mappings().all()
    return [dict(row) for row in rows]


def resolve_todo_user(todo, info):
    with _database(info).connect() as conn:
        row = conn.execute(select(users).where(users.c.id == todo["user_id"])).mappings().first()
    return dict(row) if row is not None else None


def resolve_create_todo(root, info, input):
    with _database(info).connect() as conn:
        _ensure_user(conn, input["userId"])
        result = conn.execute(
            insert(todos).values(text=input["text"], done=False, user_id=input["userId"])
        )
        return _get_todo(conn, result.inserted_primary_key[0])


def resolve_update_todo(root, info, id, **changes):
    todo_id = _todo_id(id)
    values = {key: value for key, value in changes.items() if value is not None}
    with _database(info).connect() as conn:
        if values:
            result = conn.execute(update(todos).where(todos.c.id == todo_id).values(**values))
            if result.rowcount == 0:
                return None
        return _get_todo(conn, todo_id)


def resolve_delete_todo(root, info, id):
    with _database(info).connect() as conn:
        result = conn.execute(delete(todos).where(todos.c.id == _todo_id(id)))
    return result.rowcount > 0


def resolve_create_user(root, info, name):
    with _database(info).connect() as conn:
        return _ensure_user(conn, str(uuid4()), name=name)


user_type = GraphQLObjectType(
    name="User",
    fields={
        "id": GraphQLField(GraphQLNonNull(GraphQLID)),
        "name": GraphQLField(GraphQLNonNull(GraphQLString)),
    },
)

todo_type = GraphQLObjectType(
    name="Todo",
    fields={
        "id": GraphQLField(GraphQLNonNull(GraphQLID)),
        "text": GraphQLField(GraphQLNonNull(GraphQLString)),
        "done": GraphQLField(GraphQLNonNull(GraphQLBoolean)),
        "user": GraphQLField(GraphQLNonNull(user_type), resolve=resolve_todo_user),
    },
)

new_todo_type = GraphQLInputObjectType(
    name="NewTodo",
    fields={
        "text": GraphQLInputField(GraphQLNonNull(GraphQLString)),
        "userId": GraphQLInputField(GraphQLNonNull(GraphQLString)),
    },
)

query_type = GraphQLObjectType(
    name="Query",
    fields={
        "todos": GraphQLField(
            GraphQLNonNull(GraphQLList(GraphQLNonNull(todo_type))),
            resolve=resolve_todos,
        ),
        "todo": GraphQLField(
            todo_type,
            args={"id": GraphQLArgument(GraphQLNonNull(GraphQLID))},
            resolve=resolve_todo,
        ),
        "users": GraphQLField(
            GraphQLNonNull(GraphQLList(GraphQLNonNull(user_type))),
            resolve=resolve_users,
        ),
    },
)

mutation_type = GraphQLObjectType(
    name="Mutation",
    fields={
        "createTodo": GraphQLField(
            GraphQLNonNull(todo_type),
            args={"input": GraphQLArgument(GraphQLNonNull(new_todo_type))},
            resolve=resolve_create_todo,
        ),
        "updateTodo": GraphQLField(
            todo_type,
            args={
                "id": GraphQLArgument(GraphQLNonNull(GraphQLID)),
                "text": GraphQLArgument(GraphQLString),
                "done": GraphQLArgument(GraphQLBoolean),
            },
            resolve=resolve_update_todo,
        ),
        "deleteTodo": GraphQLField(
            GraphQLNonNull(GraphQLBoolean),
            args={"id": GraphQLArgument(GraphQLNonNull(GraphQLID))},
            resolve=resolve_delete_todo,
        ),
        "createUser": GraphQLField(
            GraphQLNonNull(user_type),
            args={"name": GraphQLArgument(GraphQLNonNull(GraphQLString))},
            resolve=resolve_create_user,
        ),
    },
)

schema = GraphQLSchema(query=query_type, mutation=mutation_type)
