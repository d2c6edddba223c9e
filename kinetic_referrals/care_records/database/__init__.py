from .base import Database, RepositoryError
from .connection import get_connection, init_database
from .episode_repository import EpisodeRepository
from .transition_repository import TransitionRepository

__all__ = [
    "Database",
    "RepositoryError",
    "get_connection",
    "init_database",
    "EpisodeRepository",
    "TransitionRepository",
]
