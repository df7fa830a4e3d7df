"""
Homebuilding Production Scheduler — model package.

The shared Flask-SQLAlchemy handle lives here so every model module and
service can do ``from app.models import db``.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
