"""Selected-user session: fetches, reconciliation and stale response suppression."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Literal, Mapping, Optional

from multitracker.progress.aggregation import DEFAULT_STEP_CREDITS, StepCredits, aggregate
from multitracker.session.tokens import DataKind, RequestTicket, RequestTokens
from multitracker.store.client import EntryPayload, ProgressClient
from multitracker.store.errors import (
    AggregateUnavailableError,
    FieldError,
    TrackerError,
    ValidationError,
)
from multitracker.store.models import DateWindow, ProgressEntry, User, WeeklyAggregate

logger = logging.getLogger(__name__)

Status = Literal["loading", "ready", "error"]
Listener = Callable[["DashboardState"], Any]


@dataclass
class DashboardState:
    """Observable dashboard state."""

    status: Status = "loading"
    selected_user_id: Optional[int] = None
    users: list[User] = field(default_factory=list)

    entries: list[ProgressEntry] = field(default_factory=list)
    aggregate: Optional[WeeklyAggregate] = None
    aggregate_source: Optional[str] = None  # "remote" or "local"
    error: Optional[str] = None

    # Entry form
    submitting: bool = False
    submit_error: Optional[str] = None

    @property
    def selected_user(self) -> Optional[User]:
        for user in self.users:
            if user.id == self.selected_user_id:
                return user
        return None


class SelectionController:
    """Owns which user is being viewed and keeps their data in sync.

    Every fetch carries a request ticket. Responses whose ticket has been
    superseded (for example because another user was selected meanwhile) are
    dropped on arrival, so visible state always reflects the most recently
    issued request for each kind of data.
    """

    def __init__(
        self,
        client: ProgressClient,
        clock: Callable[[], date] = date.today,
        window_days: int = 7,
        history_days: int = 30,
        step_credits: StepCredits = DEFAULT_STEP_CREDITS,
    ):
        """
        Initialize controller.

        Args:
            client: Progress store client
            clock: Returns "today"; only used to place the date windows
            window_days: Length of the weekly aggregate window
            history_days: Length of the entries table window
            step_credits: Mapping used when the aggregate is computed locally
        """
        self.client = client
        self.clock = clock
        self.window_days = window_days
        self.history_days = history_days
        self.step_credits = step_credits

        self.state = DashboardState()
        self._tokens = RequestTokens()
        self._loading: set[DataKind] = set()
        self._errors: dict[DataKind, str] = {}
        self._listeners: list[Listener] = []
        self._tasks: set[asyncio.Task] = set()

    # Observers

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call `listener(state)` after every applied change. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self):
        for listener in list(self._listeners):
            listener(self.state)

    # Users and selection

    async def list_users(self) -> list[User]:
        """
        Load the user list.

        On the first successful load with nothing selected, the first user is
        selected and their data is fetched.

        Returns:
            Known users in server order (the previous list if the load failed)
        """
        ticket = self._begin(DataKind.USERS)

        try:
            users = await self.client.fetch_users()
        except TrackerError as e:
            self._fail(ticket, e)
            return list(self.state.users)

        if not self._tokens.is_current(ticket):
            logger.warning("Discarding stale user list")
            return users

        self.state.users = list(users)
        logger.info(f"Loaded {len(users)} users")

        if self.state.selected_user_id is None and users:
            self._finish(ticket, notify=False)
            self.select_user(users[0].id)
        else:
            self._finish(ticket)
        return users

    def select_user(self, user_id: int) -> Optional[asyncio.Task]:
        """
        Make `user_id` the viewed user and fetch their entries and aggregate.

        Unknown ids are ignored. Fetches still in flight for the previous
        selection are superseded; their results are discarded on arrival.

        Returns:
            Task completing when both fetches have settled, or None if ignored
        """
        if not any(user.id == user_id for user in self.state.users):
            logger.debug(f"Ignoring selection of unknown user {user_id}")
            return None

        previous = self.state.selected_user_id
        if previous != user_id:
            logger.info(f"Selected user {user_id} (was {previous})")

        self.state.selected_user_id = user_id
        self.state.entries = []
        self.state.aggregate = None
        self.state.aggregate_source = None

        entries_ticket = self._begin(DataKind.ENTRIES, user_id, notify=False)
        aggregate_ticket = self._begin(DataKind.AGGREGATE, user_id)

        return self._schedule(self._load_user(entries_ticket, aggregate_ticket))

    async def refresh(self):
        """Retry after an error: reload users if none are known, else the selected user's data."""
        if not self.state.users:
            await self.list_users()
        elif self.state.selected_user_id is not None:
            self.select_user(self.state.selected_user_id)
        await self.wait_idle()

    async def wait_idle(self):
        """Wait for every fetch this controller has scheduled."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    # Loading

    async def _load_user(self, entries_ticket: RequestTicket, aggregate_ticket: RequestTicket):
        await asyncio.gather(
            self._load_entries(entries_ticket),
            self._load_aggregate(aggregate_ticket),
        )

    async def _load_entries(self, ticket: RequestTicket):
        window = DateWindow.trailing(self.clock(), self.history_days)

        try:
            entries = await self.client.fetch_entries(ticket.user_id, window)
        except TrackerError as e:
            self._fail(ticket, e)
            return

        if not self._tokens.is_current(ticket):
            logger.warning(f"Discarding stale entries for user {ticket.user_id}")
            return

        self.state.entries = entries
        self._finish(ticket)

    async def _load_aggregate(self, ticket: RequestTicket):
        window = DateWindow.trailing(self.clock(), self.window_days)
        source = "remote"

        try:
            try:
                weekly = await self.client.fetch_weekly_aggregate(ticket.user_id, window)
            except AggregateUnavailableError:
                if not self._tokens.is_current(ticket):
                    logger.warning(f"Discarding stale aggregate for user {ticket.user_id}")
                    return
                logger.warning(
                    f"Weekly aggregate unavailable for user {ticket.user_id}, computing locally"
                )
                entries = await self.client.fetch_entries(ticket.user_id, window)
                weekly = aggregate(
                    entries, window, user_id=ticket.user_id, step_credits=self.step_credits
                )
                source = "local"
        except TrackerError as e:
            self._fail(ticket, e)
            return

        if not self._tokens.is_current(ticket):
            logger.warning(f"Discarding stale aggregate for user {ticket.user_id}")
            return

        self.state.aggregate = weekly
        self.state.aggregate_source = source
        self._finish(ticket)

    def _begin(self, kind: DataKind, user_id: Optional[int] = None, notify: bool = True) -> RequestTicket:
        ticket = self._tokens.issue(kind, user_id)
        self._loading.add(kind)
        # Only this kind is being retried; failures of other kinds stay visible
        self._errors.pop(kind, None)
        self._update_status()
        if notify:
            self._notify()
        return ticket

    def _finish(self, ticket: RequestTicket, notify: bool = True):
        self._loading.discard(ticket.kind)
        self._update_status()
        if notify:
            self._notify()

    def _fail(self, ticket: RequestTicket, error: TrackerError):
        if not self._tokens.is_current(ticket):
            logger.warning(f"Discarding stale {ticket.kind.value} failure: {error.message}")
            return

        logger.error(f"Failed to load {ticket.kind.value}: {error.message}")
        self._loading.discard(ticket.kind)
        self._errors.pop(ticket.kind, None)
        self._errors[ticket.kind] = error.message
        self._update_status()
        self._notify()

    def _update_status(self):
        """Derive status and error from every data kind's current outcome."""
        if self._errors:
            self.state.status = "error"
            # Most recent failure
            self.state.error = list(self._errors.values())[-1]
        elif self._loading:
            self.state.status = "loading"
            self.state.error = None
        else:
            self.state.status = "ready"
            self.state.error = None

    def _schedule(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # Entry form

    async def submit_entry(
        self,
        raw: EntryPayload,
        user_id: Optional[int] = None,
        entry_id: Optional[int] = None,
    ) -> Optional[ProgressEntry]:
        """
        Validate and send a daily entry, then refresh the viewed user's data.

        Only one submission may be outstanding; further calls while one is in
        flight return None without sending anything.

        Args:
            raw: Form input or normalized entry; a missing date defaults to today
            user_id: Owner (defaults to the selected user)
            entry_id: Existing entry to replace instead of creating a new one

        Returns:
            The stored entry, or None if a submission was already in flight

        Raises:
            TrackerError: validation, conflict, auth, network or server failure
        """
        if self.state.submitting:
            logger.warning("Submission already in progress, ignoring")
            return None

        user_id = user_id if user_id is not None else self.state.selected_user_id
        if user_id is None:
            raise ValidationError([FieldError("userId", "Select a user first.")])

        if isinstance(raw, Mapping) and raw.get("date") in (None, ""):
            raw = {**raw, "date": self.clock()}

        self.state.submitting = True
        self.state.submit_error = None
        self._notify()

        try:
            if entry_id is None:
                entry = await self.client.create_entry(user_id, raw)
            else:
                entry = await self.client.update_entry(entry_id, user_id, raw)
        except TrackerError as e:
            self.state.submit_error = e.message
            raise
        finally:
            self.state.submitting = False
            self._notify()

        if user_id == self.state.selected_user_id:
            self.select_user(user_id)
        return entry

    async def delete_entry(self, entry_id: int) -> str:
        """Delete an entry of the selected user and refresh."""
        message = await self.client.delete_entry(entry_id)
        if self.state.selected_user_id is not None:
            self.select_user(self.state.selected_user_id)
        return message
