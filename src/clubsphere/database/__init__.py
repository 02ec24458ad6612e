"""
Database package for ClubSphere.

Exposes the Motor-backed `DatabaseManager` singleton and the identifier
normalisation helpers used by every club and event lookup.
"""

from clubsphere.database.identifiers import id_variants, reference_predicate, to_object_id
from clubsphere.database.manager import DatabaseManager, db_manager

__all__ = ["DatabaseManager", "db_manager", "id_variants", "reference_predicate", "to_object_id"]
