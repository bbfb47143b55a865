"""HTTP client for the remote progress store."""

import asyncio
import logging
from datetime import date
from typing import Any, Callable, Mapping, Optional, Union

import httpx
import pydantic

from multitracker.progress.validation import validate
from multitracker.store.credentials import TokenProvider
from multitracker.store.errors import (
    AggregateUnavailableError,
    AuthError,
    ConflictError,
    NetworkError,
    ServerError,
    ValidationError,
)
from multitracker.store.models import (
    DateWindow,
    NormalizedEntry,
    ProgressEntry,
    User,
    WeeklyAggregate,
)

logger = logging.getLogger(__name__)

EntryPayload = Union[NormalizedEntry, Mapping[str, Any]]


class ApiClient:
    """Bearer-token authenticated JSON client.

    Every call is a single attempt. Transport and HTTP failures are converted
    to the tracker error taxonomy before they leave this class.
    """

    def __init__(
        self,
        base_url: str,
        token_provider: Optional[TokenProvider] = None,
        timeout: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize API client.

        Args:
            base_url: Progress server URL (e.g., http://localhost:3000)
            token_provider: Source of the bearer token, read on every request
            timeout: Transport timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.token_provider = token_provider
        self.timeout = timeout
        self.transport = transport

    def _auth_headers(self) -> dict:
        token = self.token_provider.get_token() if self.token_provider else None
        if not token:
            raise AuthError()
        return {"Authorization": f"Bearer {token}"}

    async def request(
        self,
        method: str,
        path: str,
        *,
        authenticated: bool = True,
        **kwargs,
    ) -> Any:
        """
        Send a request and decode the JSON answer.

        Args:
            method: HTTP method
            path: Path below the base URL (e.g., "/api/auth/users")
            authenticated: Attach the bearer token (fails with AuthError if missing)
            **kwargs: Passed to httpx (params, json, data, files)

        Returns:
            Decoded JSON body, or an empty dict for empty bodies
        """
        headers = self._auth_headers() if authenticated else {}
        url = f"{self.base_url}{path}"

        logger.debug(f"{method} {url}")
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.request(method, url, headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            logger.error(f"{method} {path} timed out: {e}")
            raise NetworkError("The progress server did not respond in time.") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error(f"{method} {path} failed: {e}")
            raise NetworkError() from e

        if response.is_error:
            self._raise_for_status(method, path, response)

        if not response.content:
            return {}

        try:
            return response.json()
        except ValueError as e:
            raise ServerError("The progress server sent a malformed response.", response.status_code) from e

    def _raise_for_status(self, method: str, path: str, response: httpx.Response):
        message = _error_message(response)
        status = response.status_code
        logger.error(f"{method} {path} returned {status}: {message or response.text[:200]}")

        if status in (401, 403):
            raise AuthError(message)
        if status == 409:
            raise ConflictError(message, status_code=status)
        raise ServerError(message, status_code=status)


def _error_message(response: httpx.Response) -> Optional[str]:
    """Server-supplied error text from a `{ error: string }` body, if any."""
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        message = body.get("error") or body.get("message")
        if isinstance(message, str) and message.strip():
            return message.strip()
    return None


class ProgressClient(ApiClient):
    """Typed request/response boundary to the progress store."""

    def __init__(
        self,
        base_url: str,
        token_provider: Optional[TokenProvider] = None,
        timeout: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], date] = date.today,
        window_days: int = 7,
    ):
        super().__init__(base_url, token_provider, timeout=timeout, transport=transport)
        self.clock = clock
        self.window_days = window_days

    async def fetch_users(self) -> list[User]:
        """
        Get all users known to the store, in server order.

        Returns:
            List of User objects
        """
        data = await self.request("GET", "/api/auth/users")
        users = _parse_list(data, "users", User)
        logger.info(f"Fetched {len(users)} users")
        return users

    async def fetch_entries(
        self, user_id: int, date_range: Optional[DateWindow] = None
    ) -> list[ProgressEntry]:
        """
        Get a user's daily entries.

        Args:
            user_id: User to query
            date_range: Optional inclusive window to restrict results to

        Returns:
            Entries sorted by date ascending (empty if the user has none)
        """
        params = {"userId": user_id}
        if date_range is not None:
            params["startDate"] = date_range.start.isoformat()
            params["endDate"] = date_range.end.isoformat()

        data = await self.request("GET", "/api/progress/daily", params=params)
        # Rows may omit the owner; the query already scopes them to user_id
        entries = _parse_list(data, "progress", ProgressEntry, defaults={"userId": user_id})

        entries = [entry for entry in entries if entry.user_id == user_id]
        if date_range is not None:
            entries = [entry for entry in entries if date_range.contains(entry.date)]
        entries.sort(key=lambda entry: (entry.date, entry.id or 0))

        logger.info(f"Fetched {len(entries)} entries for user {user_id}")
        return entries

    async def fetch_weekly_aggregate(
        self, user_id: int, window: Optional[DateWindow] = None
    ) -> WeeklyAggregate:
        """
        Get the store-computed weekly aggregate for a user.

        Args:
            user_id: User to query
            window: Window the aggregate covers (defaults to the trailing window ending today)

        Returns:
            WeeklyAggregate

        Raises:
            AggregateUnavailableError: the store cannot compute a usable aggregate;
                callers fall back to local aggregation.
        """
        window = window or DateWindow.trailing(self.clock(), self.window_days)

        try:
            data = await self.request("POST", "/api/progress/weekly", json={"userId": user_id})
        except ServerError as e:
            if e.status_code in (404, 501):
                raise AggregateUnavailableError(status_code=e.status_code) from e
            raise

        if not isinstance(data, dict):
            raise AggregateUnavailableError()

        try:
            return WeeklyAggregate(
                **{
                    **data,
                    "user_id": user_id,
                    "window_start": window.start,
                    "window_end": window.end,
                }
            )
        except pydantic.ValidationError as e:
            logger.warning(f"Weekly aggregate for user {user_id} violates contract: {e}")
            raise AggregateUnavailableError() from e

    async def create_entry(self, user_id: int, payload: EntryPayload) -> ProgressEntry:
        """
        Create a daily entry.

        Args:
            user_id: Owner of the entry
            payload: Raw form input or an already normalized entry

        Returns:
            The created ProgressEntry

        Raises:
            ValidationError: payload is invalid (nothing is sent)
            ConflictError: an entry already exists for (user_id, date)
        """
        entry = _normalize(payload)
        data = await self.request("POST", "/api/progress/daily", json=entry.to_payload(user_id))
        created = _created_entry(data, user_id, entry)
        logger.info(f"Created entry for user {user_id} on {entry.date}")
        return created

    async def update_entry(
        self, entry_id: int, user_id: int, payload: EntryPayload
    ) -> ProgressEntry:
        """Replace an existing entry. Same validation path as create_entry."""
        entry = _normalize(payload)
        data = await self.request(
            "PUT", f"/api/progress/daily/{entry_id}", json=entry.to_payload(user_id)
        )
        updated = _created_entry(data, user_id, entry, entry_id=entry_id)
        logger.info(f"Updated entry {entry_id} for user {user_id}")
        return updated

    async def delete_entry(self, entry_id: int) -> str:
        """Delete an entry. Returns the server message."""
        data = await self.request("DELETE", f"/api/progress/daily/{entry_id}")
        logger.info(f"Deleted entry {entry_id}")
        return _message(data, "Entry deleted.")


def _normalize(payload: EntryPayload) -> NormalizedEntry:
    result = validate(payload)
    if result.errors:
        raise ValidationError(result.errors)
    return result.entry


def _parse_list(data: Any, key: str, model: type, defaults: Optional[dict] = None) -> list:
    rows = data.get(key) if isinstance(data, dict) else None
    if rows is None:
        return []
    if not isinstance(rows, list) or not all(isinstance(row, dict) for row in rows):
        raise ServerError(f"Expected a list of objects under '{key}'.")
    try:
        return [model.model_validate({**(defaults or {}), **row}) for row in rows]
    except pydantic.ValidationError as e:
        raise ServerError(f"The progress server sent malformed '{key}' data.") from e


def _created_entry(
    data: Any, user_id: int, entry: NormalizedEntry, entry_id: Optional[int] = None
) -> ProgressEntry:
    """Entry echoed by the server, or the submitted entry when only a message came back."""
    if isinstance(data, dict):
        for key in ("progress", "entry"):
            row = data.get(key)
            if isinstance(row, dict):
                try:
                    return ProgressEntry.model_validate({"userId": user_id, **row})
                except pydantic.ValidationError:
                    logger.warning("Ignoring malformed entry echoed by the server")
        if entry_id is None and isinstance(data.get("id"), int):
            entry_id = data["id"]
    return entry.to_entry(user_id, entry_id=entry_id)


def _message(data: Any, default: str) -> str:
    if isinstance(data, dict) and isinstance(data.get("message"), str):
        return data["message"]
    return default


async def demo_client():
    """Demo: fetch users and this week's aggregate for each."""
    from multitracker.config import settings
    from multitracker.store.credentials import CredentialStore, StaticTokenProvider

    provider = (
        StaticTokenProvider(settings.api_token)
        if settings.api_token
        else CredentialStore(settings.credentials_path)
    )
    client = ProgressClient(settings.api_base_url, provider, timeout=settings.request_timeout)

    users = await client.fetch_users()
    print(f"\nFound {len(users)} users")
    for user in users:
        try:
            aggregate = await client.fetch_weekly_aggregate(user.id)
            print(
                f"  - {user.name}: {aggregate.total_water_liters}L water, "
                f"{aggregate.total_sleep_hours}h sleep, {aggregate.progress_percentage}%"
            )
        except AggregateUnavailableError:
            print(f"  - {user.name}: weekly stats unavailable")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(demo_client())
