"""SQLAlchemy handle shared by all backend models."""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
