# Overview: Flask extension instances for database, migrations and the read cache.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

from .cache import Cache

db = SQLAlchemy()
migrate = Migrate()
cache = Cache()
