"""
Flask extensions shared across the Retenza app.

Models import db from here, and create_app() binds both extensions.
"""
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

# Database
db = SQLAlchemy()

# Migrations (migrations/ directory, `flask db upgrade`)
migrate = Migrate()
