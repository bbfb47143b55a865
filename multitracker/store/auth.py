"""Credential exchange: login, signup and logout."""

import json
import logging
from typing import Any, Optional

from multitracker.store.client import ApiClient
from multitracker.store.credentials import CredentialStore
from multitracker.store.errors import FieldError, ServerError, ValidationError

logger = logging.getLogger(__name__)


class AuthClient(ApiClient):
    """Exchanges credentials for a bearer token and keeps it in the credential slot."""

    def __init__(self, base_url: str, store: CredentialStore, **kwargs):
        super().__init__(base_url, store, **kwargs)
        self.store = store

    async def login(self, email: str, password: str) -> str:
        """
        Log in and persist the returned token.

        Returns:
            Server message
        """
        data = await self.request(
            "POST",
            "/api/auth/login",
            authenticated=False,
            json={"email": email, "password": password},
        )
        token = data.get("token") if isinstance(data, dict) else None
        if not isinstance(token, str) or not token:
            raise ServerError("Login succeeded but no token was returned.")

        self.store.set_token(token)
        logger.info(f"✓ Logged in as {email}")
        return data.get("message") or "Login successful!"

    async def signup(
        self,
        fields: dict[str, Any],
        image: Optional[tuple[str, bytes, str]] = None,
    ) -> str:
        """
        Register a new user.

        Args:
            fields: Signup form fields; `confirmPassword` is checked and dropped,
                a comma separated `skills` string is split into a list
            image: Optional (filename, content, content_type) profile picture,
                forwarded as an opaque attachment

        Returns:
            Server message
        """
        fields = dict(fields)
        confirm = fields.pop("confirmPassword", None)
        if confirm is not None and confirm != fields.get("password"):
            raise ValidationError([FieldError("confirmPassword", "Passwords do not match.")])

        if isinstance(fields.get("skills"), str):
            fields["skills"] = [s.strip() for s in fields["skills"].split(",") if s.strip()]

        files = {"image": image} if image else None
        data = await self.request(
            "POST",
            "/api/auth/signup",
            authenticated=False,
            data={"data": json.dumps(fields)},
            files=files,
        )
        logger.info(f"Signed up {fields.get('email', 'new user')}")
        if isinstance(data, dict) and data.get("message"):
            return data["message"]
        return "Signup successful!"

    def logout(self):
        """Forget the stored token."""
        self.store.clear_token()
