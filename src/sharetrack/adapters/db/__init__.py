"""SQLAlchemy models and the database facade."""
