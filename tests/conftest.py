import pytest
from flask import Flask
from crudrest import CrudApi
from todo_models import db, Todo, Project, Tag, User, Order, Product


def create_app():
    app = Flask("crudrest_test")
    app.config.update(SQLALCHEMY_DATABASE_URI="sqlite://", TESTING=True)
    db.init_app(app)
    return app


def create_api(app):
    api = CrudApi(app)
    api.expose_object(Todo)
    api.expose_object(Project)
    api.expose_object(Tag, methods=["GET", "DELETE"])
    api.expose_object(User)
    api.expose_object(Order)
    api.expose_object(Product)
    api.expose_nested(Project, "todos", Todo)
    api.expose_nested(User, "orders", Order)
    api.expose_nested(Order, "product", Product)
    return api


@pytest.fixture
def app():
    app = create_app()
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.drop_all()


@pytest.fixture
def api(app):
    return create_api(app)


@pytest.fixture
def client(api):
    return api.app.test_client()


@pytest.fixture
def seed(app):
    """
    add and commit instances, returns their ids
    """

    def _seed(*instances):
        with app.app_context():
            db.session.add_all(instances)
            db.session.commit()
            return [instance.id for instance in instances]

    return _seed
