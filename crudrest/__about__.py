__version__ = "0.3.0"
__description__ = "crudrest : automatic REST CRUD endpoints for SQLAlchemy models"
