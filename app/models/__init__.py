"""
Governance Checklist API
Shared SQLAlchemy handle.

Every model module imports ``db`` from here so that the application factory
can bind a single instance with ``db.init_app(app)``.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
