import logging
import warnings
from http import HTTPStatus
from sqlalchemy import select
from sqlalchemy.exc import SAWarning
import pytest
from crudrest import ProcessFailedError, SystemValidationError, CrudApi
from crudrest.persistence import SQLAlchemyPersistence
from todo_models import db, Todo, Project, Tag, User, Order, Product, Node, Pair


def test_routes(api):
    rules = {rule.rule: rule.methods for rule in api.app.url_map.iter_rules()}
    assert {"GET", "POST"} <= rules["/todos"]
    assert "PUT" not in rules["/todos"]
    assert {"GET", "PUT", "DELETE"} <= rules["/todos/<string:Todoid>"]
    assert {"GET", "POST"} <= rules["/projects/<string:Projectid>/todos"]
    assert "DELETE" in rules["/projects/<string:Projectid>/todos/<string:Todoid>"]
    assert "POST" not in rules["/tags"]
    assert api.app.view_functions["api.todos"].view_class.__name__ == "Todo_API"
    assert api.app.view_functions["api.projects.todos"].view_class.__name__ == "Project_X_todos_API"


def test_create(client):
    response = client.post("/todos", json={"Title": "clean", "DONE": "false"})
    assert response.status_code == HTTPStatus.OK
    todo = response.get_json()["Todo"]
    assert todo["title"] == "clean"
    assert todo["done"] is False
    assert todo["id"] > 0
    assert todo["created_at"]
    assert todo["deleted_at"] is None


def test_create_without_content_type(client):
    response = client.post("/todos", data='{"title": "curl"}')
    assert response.status_code == HTTPStatus.OK
    assert response.get_json()["Todo"]["title"] == "curl"


def test_create_ignores_client_id(client, seed):
    seed(Todo(title="first"))
    response = client.post("/todos", json={"id": 42, "title": "second"})
    assert response.get_json()["Todo"]["id"] == 2


def test_create_invalid_body(client):
    response = client.post("/todos", data="not json")
    assert response.status_code == HTTPStatus.BAD_REQUEST
    assert response.get_json()["error"].startswith("bind failed")

    response = client.post("/todos", json=["a", "list"])
    assert response.status_code == HTTPStatus.BAD_REQUEST


def test_create_invalid_value(client):
    response = client.post("/orders", json={"quantity": "many"})
    assert response.status_code == HTTPStatus.BAD_REQUEST
    assert "quantity" in response.get_json()["error"]


def test_get(client, seed):
    todo_id, = seed(Todo(title="read"))
    response = client.get(f"/todos/{todo_id}")
    assert response.status_code == HTTPStatus.OK
    assert response.get_json()["Todo"]["title"] == "read"


def test_get_not_found(client):
    response = client.get("/todos/7")
    assert response.status_code == HTTPStatus.NOT_FOUND
    assert set(response.get_json()) == {"error"}
    assert response.get_json()["error"].startswith("not found")


def test_get_malformed_id(client):
    response = client.get("/todos/abc")
    assert response.status_code == HTTPStatus.BAD_REQUEST


def test_update(client, seed):
    todo_id, = seed(Todo(title="old"))
    response = client.put(f"/todos/{todo_id}", json={"id": todo_id, "title": "new", "done": True})
    assert response.status_code == HTTPStatus.OK
    todo = response.get_json()["Todo"]
    assert todo["title"] == "new"
    assert todo["done"] is True


def test_update_identity_mismatch(client, seed):
    todo_id, = seed(Todo(title="keep"))
    response = client.put(f"/todos/{todo_id}", json={"ID": todo_id + 1, "title": "changed"})
    assert response.status_code == HTTPStatus.BAD_REQUEST
    assert response.get_json()["error"].startswith("id can not be updated")
    assert client.get(f"/todos/{todo_id}").get_json()["Todo"]["title"] == "keep"


def test_update_fractional_id(client, seed):
    todo_id, = seed(Todo(title="keep"))
    response = client.put(f"/todos/{todo_id}", json={"id": todo_id + 0.5, "title": "changed"})
    assert response.status_code == HTTPStatus.BAD_REQUEST
    assert response.get_json()["error"].startswith("bind failed")
    assert client.get(f"/todos/{todo_id}").get_json()["Todo"]["title"] == "keep"


def test_create_lossy_value(client):
    assert client.post("/orders", json={"quantity": 2.7}).status_code == HTTPStatus.BAD_REQUEST
    assert client.post("/orders", json={"quantity": True}).status_code == HTTPStatus.BAD_REQUEST
    assert client.get("/orders").get_json() == {"Orders": []}


def test_update_not_found(client):
    response = client.put("/todos/99", json={"title": "x"})
    assert response.status_code == HTTPStatus.NOT_FOUND


def test_delete_not_found(client):
    response = client.delete("/todos/99")
    assert response.status_code == HTTPStatus.NOT_FOUND
    assert "error" in response.get_json()


def test_soft_delete(app, client, seed):
    todo_id, other_id = seed(Todo(title="gone"), Todo(title="stays"))
    response = client.delete(f"/todos/{todo_id}")
    assert response.status_code == HTTPStatus.OK
    assert response.get_json() == {"deleted": True}

    assert client.get(f"/todos/{todo_id}").status_code == HTTPStatus.NOT_FOUND
    body = client.get("/todos?total=true").get_json()
    assert [todo["id"] for todo in body["Todos"]] == [other_id]
    assert body["total"] == 1

    with app.app_context():
        todo = db.session.execute(select(Todo).where(Todo.id == todo_id).execution_options(include_deleted=True)).scalar_one()
        assert todo.deleted_at is not None


def test_hard_delete(app, client, seed):
    tag_id, = seed(Tag(id=5, label="x"))
    response = client.delete(f"/tags/{tag_id}")
    assert response.get_json() == {"deleted": True}
    with app.app_context():
        assert db.session.get(Tag, tag_id) is None


def test_method_not_exposed(client):
    assert client.post("/tags", json={"label": "x"}).status_code == HTTPStatus.METHOD_NOT_ALLOWED


def test_list_empty(client):
    response = client.get("/todos")
    assert response.status_code == HTTPStatus.OK
    assert response.get_json() == {"Todos": []}


def test_list_limit_total(client, seed):
    seed(*[Todo(title=f"todo {i}") for i in range(5)])
    body = client.get("/todos?limit=1&total=true").get_json()
    assert len(body["Todos"]) == 1
    assert body["total"] == 5


def test_list_offset_order(client, seed):
    seed(Todo(title="b"), Todo(title="c"), Todo(title="a"))
    body = client.get("/todos?order_by=Title&desc=true").get_json()
    assert [todo["title"] for todo in body["Todos"]] == ["c", "b", "a"]

    body = client.get("/todos?order_by=title&limit=2&offset=1").get_json()
    assert [todo["title"] for todo in body["Todos"]] == ["b", "c"]


def test_list_filter(client, seed):
    seed(Todo(title="a", done=True), Todo(title="b", done=False), Todo(title="c", done=True))
    body = client.get("/todos?filter_by=done&filter_value=true&total=true&limit=1&order_by=title").get_json()
    assert [todo["title"] for todo in body["Todos"]] == ["a"]
    assert body["total"] == 2

    # filter_value is required
    body = client.get("/todos?filter_by=done").get_json()
    assert len(body["Todos"]) == 3


def test_list_unknown_field(client, seed):
    seed(Todo(title="a"))
    response = client.get("/todos?order_by=nosuchfield")
    assert response.status_code == HTTPStatus.UNPROCESSABLE_ENTITY
    assert response.get_json()["error"].startswith("process failed")


def test_list_bad_parameter(client):
    response = client.get("/todos?limit=abc")
    assert response.status_code == HTTPStatus.BAD_REQUEST
    assert "limit" in response.get_json()["error"]


def test_list_total_error(api, client, seed, monkeypatch):
    seed(Todo(title="a"))

    def fail_count(model, options=()):
        raise ProcessFailedError("count failed")

    monkeypatch.setattr(api.persistence, "execute_count", fail_count)
    response = client.get("/todos?total=true")
    assert response.status_code == HTTPStatus.OK
    body = response.get_json()
    assert len(body["Todos"]) == 1
    assert body["totalError"].startswith("process failed")
    assert "total" not in body


def test_preload(client, seed):
    seed(User(name="u", orders=[Order(quantity=2, product=Product(name="pen", price=1.5))]))
    user = client.get("/users").get_json()["Users"][0]
    assert "orders" not in user

    user = client.get("/users?preload=orders.product").get_json()["Users"][0]
    assert user["orders"][0]["quantity"] == 2
    assert user["orders"][0]["product"]["name"] == "pen"

    user = client.get("/users/1?preload=Orders").get_json()["User"]
    assert user["orders"][0]["quantity"] == 2


def test_preload_multiple_paths(client, seed):
    seed(Order(quantity=1, user=User(name="u"), product=Product(name="pen")))
    repeated = client.get("/orders?preload=user&preload=product").get_json()["Orders"]
    joined = client.get("/orders?preload=product,user").get_json()["Orders"]
    assert repeated == joined
    assert repeated[0]["user"]["name"] == "u"
    assert repeated[0]["product"]["name"] == "pen"


def test_nested_preload(client, seed):
    user_id, = seed(User(name="u", orders=[Order(quantity=1, product=Product(name="pen"))]))
    body = client.get(f"/users/{user_id}/orders?preload=product").get_json()
    assert body["Orders"][0]["product"]["name"] == "pen"


def test_preload_invalid(client, seed):
    seed(User(name="u"))
    response = client.get("/users?preload=nope")
    assert response.status_code == HTTPStatus.UNPROCESSABLE_ENTITY


def test_nested_link(client, seed):
    project_id, todo_id = seed(Project(title="house"), Todo(title="clean"))

    for _ in range(2):
        response = client.post(f"/projects/{project_id}/todos", json={"id": todo_id, "title": "ignored"})
        assert response.status_code == HTTPStatus.OK
        project = response.get_json()["Project"]
        assert [todo["id"] for todo in project["todos"]] == [todo_id]

    body = client.get(f"/projects/{project_id}/todos?total=true").get_json()
    assert [todo["id"] for todo in body["Todos"]] == [todo_id]
    assert body["total"] == 1
    # linking doesn't update the child
    assert client.get(f"/todos/{todo_id}").get_json()["Todo"]["title"] == "clean"


def test_nested_create(client, seed):
    project_id, = seed(Project(title="house"))
    response = client.post(f"/projects/{project_id}/todos", json={"title": "paint"})
    assert response.status_code == HTTPStatus.OK
    todos = response.get_json()["Project"]["todos"]
    assert [todo["title"] for todo in todos] == ["paint"]
    assert client.get("/todos?total=true").get_json()["total"] == 1


def test_nested_link_boolean_id(client, seed):
    project_id, todo_id = seed(Project(title="house"), Todo(title="clean"))
    response = client.post(f"/projects/{project_id}/todos", json={"id": True})
    assert response.status_code == HTTPStatus.BAD_REQUEST
    assert client.get(f"/projects/{project_id}/todos").get_json() == {"Todos": []}


def test_nested_not_found(client, seed):
    project_id, = seed(Project(title="house"))
    assert client.post(f"/projects/{project_id}/todos", json={"id": 9}).status_code == HTTPStatus.NOT_FOUND
    assert client.post("/projects/9/todos", json={"title": "x"}).status_code == HTTPStatus.NOT_FOUND
    assert client.get("/projects/9/todos").status_code == HTTPStatus.NOT_FOUND
    assert client.delete(f"/projects/{project_id}/todos/9").status_code == HTTPStatus.NOT_FOUND


def test_nested_unlink(client, seed):
    todo = Todo(title="clean")
    project_id, todo_id = seed(Project(title="house", todos=[todo]), todo)

    response = client.delete(f"/projects/{project_id}/todos/{todo_id}")
    assert response.status_code == HTTPStatus.OK
    assert response.get_json() == {"deleted": True}
    assert client.get(f"/projects/{project_id}/todos").get_json() == {"Todos": []}
    # the child itself still exists
    assert client.get(f"/todos/{todo_id}").status_code == HTTPStatus.OK


def test_nested_soft_deleted_child(client, seed):
    todo = Todo(title="clean")
    project_id, todo_id = seed(Project(title="house", todos=[todo]), todo)
    client.delete(f"/todos/{todo_id}")
    assert client.get(f"/projects/{project_id}/todos").get_json() == {"Todos": []}


def test_nested_single(client, seed):
    order_id, = seed(Order(quantity=1, product=Product(name="pen")))
    body = client.get(f"/orders/{order_id}/product").get_json()
    assert body["Product"]["name"] == "pen"


def test_nested_single_unset(client, seed):
    order_id, = seed(Order(quantity=1))
    with warnings.catch_warnings():
        warnings.simplefilter("error", SAWarning)
        response = client.get(f"/orders/{order_id}/product")
    assert response.status_code == HTTPStatus.OK
    assert response.get_json() == {}


def test_nested_filter(client, seed):
    user_id, = seed(User(name="u", orders=[Order(quantity=1), Order(quantity=2), Order(quantity=2)]))
    body = client.get(f"/users/{user_id}/orders?filter_by=quantity&filter_value=2&limit=1&total=true").get_json()
    assert [order["quantity"] for order in body["Orders"]] == [2]
    assert body["total"] == 2


def test_expose_nested_validation(app):
    api = CrudApi(app)
    with pytest.raises(SystemValidationError):
        api.expose_nested(Project, "title", Todo)
    with pytest.raises(SystemValidationError):
        api.expose_nested(Project, "todos", Tag)
    with pytest.raises(SystemValidationError):
        api.expose_object(Pair)


def test_expose_self_reference(app):
    api = CrudApi(app)
    api.expose_object(Node)
    api.expose_nested(Node, "children", Node)
    rules = [rule.rule for rule in app.url_map.iter_rules()]
    assert "/nodes/<string:Nodeid>/children/<string:Nodeid2>" in rules


def test_cors(app):
    app.config["cors_domain"] = "*"
    api = CrudApi(app)
    with app.app_context():
        api.expose_object(Tag)
    response = app.test_client().get("/tags")
    assert response.headers["Access-Control-Allow-Origin"] == "*"


def test_default_persistence(api):
    assert isinstance(api.persistence, SQLAlchemyPersistence)
    assert api.persistence.db is db


def test_request_logging(app, client, caplog):
    caplog.set_level(logging.INFO, logger="crudrest")
    client.get("/todos")
    assert not [record for record in caplog.records if "GET /todos" in record.getMessage()]

    app.config["LOG_REQUESTS"] = True
    client.get("/todos?limit=1")
    client.get("/todos/9")
    messages = [record.getMessage() for record in caplog.records]
    assert any(message.startswith("GET /todos?limit=1 200") for message in messages)
    assert any(message.startswith("GET /todos/9 404") for message in messages)
