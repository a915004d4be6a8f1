from team_scheduler.storage.base import DEFAULT_SLOT_TEMPLATE, Datastore
from team_scheduler.storage.memory import InMemoryDatastore
from team_scheduler.storage.sessions import InMemorySessionStore, SessionStore
from team_scheduler.storage.sql import SqlDatastore

__all__ = [
    "Datastore", "DEFAULT_SLOT_TEMPLATE", "InMemoryDatastore", "SqlDatastore",
    "SessionStore", "InMemorySessionStore",
]
