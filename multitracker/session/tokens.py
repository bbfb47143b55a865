"""Request tokens used to discard stale responses."""

import itertools
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class DataKind(str, Enum):
    USERS = "users"
    ENTRIES = "entries"
    AGGREGATE = "aggregate"


@dataclass(frozen=True)
class RequestTicket:
    """An in-flight fetch: what it loads, for whom, and its token."""

    kind: DataKind
    token: int
    user_id: Optional[int] = None


class RequestTokens:
    """Issues monotonically increasing tokens and remembers the latest per kind.

    A response is applied only if its ticket is still the latest issued for
    its kind ("last issued wins", not "last arrived wins").
    """

    def __init__(self):
        self._counter = itertools.count(1)
        self._latest: dict[DataKind, RequestTicket] = {}

    def issue(self, kind: DataKind, user_id: Optional[int] = None) -> RequestTicket:
        ticket = RequestTicket(kind=kind, token=next(self._counter), user_id=user_id)
        self._latest[kind] = ticket
        return ticket

    def is_current(self, ticket: RequestTicket) -> bool:
        return self._latest.get(ticket.kind) == ticket
