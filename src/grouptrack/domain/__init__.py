"""Domain layer for grouptrack application.

Services are imported from their modules directly; this package does not
re-export them so that the database layer can import domain entities and
errors without pulling in the services that depend on it.
"""
