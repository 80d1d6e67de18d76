# Overview: Flask extension instances for database and migrations, plus accessors for
# the per-app proposal collaborators registered in create_app().

from flask import current_app
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

db = SQLAlchemy()
migrate = Migrate()


def get_settings():
    return current_app.extensions["proposal_settings"]


def get_notifier():
    return current_app.extensions["proposal_notifier"]


def get_payment_gateway():
    return current_app.extensions["payment_gateway"]
