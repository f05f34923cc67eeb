"""Repository abstractions for database interactions."""

from .event_repository import EventRepository, event_to_dict

__all__ = ["EventRepository", "event_to_dict"]
