"""Session state: immutable snapshot, reducer and store."""

from sessionhud.state.models import ContextSnapshot, SessionState
from sessionhud.state.reducer import reduce
from sessionhud.state.store import SessionStore, StoreOptions, reader_factory

__all__ = [
    "ContextSnapshot",
    "SessionState",
    "SessionStore",
    "StoreOptions",
    "reader_factory",
    "reduce",
]
