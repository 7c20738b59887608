# Overview: Flask extension instances shared by models, services and the CLI.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

# Local register database (the outlet's optimistic copy of the event store)
db = SQLAlchemy()
migrate = Migrate()
