"""
CRUD operations (Create, Read, Update, Delete) for database models.

This layer provides a clean separation between the candidate services and
database operations, following the Repository pattern.
"""

from nexus_ats.crud import candidate

__all__ = ["candidate"]
