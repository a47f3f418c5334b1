# Overview: Flask extension instances for the state cache database.

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
