#!/usr/bin/env python
#
# Todo list API
#
# run:
# $ python examples/todolist.py [config.yaml]
#
# config.yaml (all keys are optional, TODO_<KEY> environment variables override them):
#   db:
#     uri: sqlite:///todolist.sqlitedb
#   http:
#     host: 127.0.0.1
#     port: 5000
#   loglevel: debug
#   log_requests: true
#
# $ curl -X POST localhost:5000/todos -d '{"title": "clean"}'
# $ curl -X POST localhost:5000/projects -d '{"title": "house"}'
# $ curl -X POST localhost:5000/projects/1/todos -d '{"id": 1}'
# $ curl 'localhost:5000/projects?preload=todos&total=true'
# $ curl -X DELETE localhost:5000/projects/1/todos/1
#
import sys
from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from crudrest import BasicModel, CrudApi, load_config

db = SQLAlchemy()

project_todos = db.Table(
    "project_todos",
    db.Column("project_id", db.Integer, db.ForeignKey("project.id"), primary_key=True),
    db.Column("todo_id", db.Integer, db.ForeignKey("todo.id"), primary_key=True),
)


class Todo(BasicModel, db.Model):
    """
    description: a todo item
    """

    __tablename__ = "todo"
    title = db.Column(db.String, default="")
    detail = db.Column(db.String, default="")
    done = db.Column(db.Boolean, default=False)


class Project(BasicModel, db.Model):
    """
    description: a project holds many todos, a todo can be part of many projects
    """

    __tablename__ = "project"
    title = db.Column(db.String, default="")
    todos = db.relationship(Todo, secondary=project_todos)


def create_api(app):
    api = CrudApi(app)
    api.expose_object(Todo)
    api.expose_object(Project)
    api.expose_nested(Project, "todos", Todo)
    return api


def create_app(config_file=None):
    app = Flask("todolist")
    app.config.update(SQLALCHEMY_DATABASE_URI="sqlite:///todolist.sqlitedb", HTTP_HOST="127.0.0.1", HTTP_PORT=5000)
    load_config(app, config_file, env_prefix="TODO")
    db.init_app(app)
    with app.app_context():
        db.create_all()
    create_api(app)
    return app


if __name__ == "__main__":
    app = create_app(sys.argv[1] if len(sys.argv) > 1 else None)
    host, port = app.config["HTTP_HOST"], int(app.config["HTTP_PORT"])
    print(f"Starting API: http://{host}:{port}/todos")
    app.run(host=host, port=port)
