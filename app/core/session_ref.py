"""Optional end-user session context.

A request either carries a verified widget session or it does not. The two
cases are separate types so every logging call site has to branch on them.
"""

from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class KnownSession:
    session_id: str


@dataclass(frozen=True)
class AnonymousSession:
    pass


SessionRef = Union[KnownSession, AnonymousSession]

ANONYMOUS = AnonymousSession()


def session_ref(session_id: Optional[str]) -> SessionRef:
    """Wrap a possibly missing session id."""
    if session_id:
        return KnownSession(session_id)
    return ANONYMOUS
