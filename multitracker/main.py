"""Main FastAPI application."""

import logging
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .config import settings
from .dashboard.view import compose, user_option
from .progress.aggregation import StepCredits
from .session.controller import SelectionController
from .store.auth import AuthClient
from .store.client import ProgressClient
from .store.credentials import CredentialStore
from .store.errors import (
    AuthError,
    ConflictError,
    NetworkError,
    ServerError,
    TrackerError,
    ValidationError,
)

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Multitracker Progress Dashboard",
    description="Multi-user daily progress tracking with weekly statistics",
    version="1.0.0",
)

# Initialize components
credentials = CredentialStore(settings.credentials_path)
if settings.api_token:
    credentials.set_token(settings.api_token)

client = ProgressClient(
    settings.api_base_url,
    credentials,
    timeout=settings.request_timeout,
    window_days=settings.aggregate_window_days,
)
auth = AuthClient(settings.api_base_url, credentials, timeout=settings.request_timeout)
controller = SelectionController(
    client,
    window_days=settings.aggregate_window_days,
    history_days=settings.history_days,
    step_credits=StepCredits(
        completed=settings.step_credit_completed,
        partial=settings.step_credit_partial,
    ),
)

ERROR_STATUS = {
    AuthError: 401,
    ValidationError: 422,
    ConflictError: 409,
    NetworkError: 502,
    ServerError: 502,
}


class LoginRequest(BaseModel):
    """Body for /api/auth/login."""

    email: str
    password: str


@app.exception_handler(TrackerError)
async def tracker_error_handler(request: Request, exc: TrackerError):
    """Map tracker errors to HTTP responses with an `{ error }` body."""
    status_code = next(
        (code for kind, code in ERROR_STATUS.items() if isinstance(exc, kind)), 500
    )
    content = {"error": exc.message}
    if isinstance(exc, ValidationError):
        content["fields"] = [{"field": e.field, "message": e.message} for e in exc.errors]
    return JSONResponse(status_code=status_code, content=content)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Multitracker Progress Dashboard",
        "version": "1.0.0",
        "endpoints": {
            "dashboard": "/api/dashboard",
            "users": "/api/users",
            "entries": "/api/entries",
            "login": "/api/auth/login",
            "status": "/status",
        },
    }


@app.get("/status")
async def status():
    """Server status endpoint."""
    return {
        "status": "running",
        "version": "1.0.0",
        "timestamp": datetime.utcnow().isoformat(),
        "api_base_url": settings.api_base_url,
        "authenticated": bool(credentials.get_token()),
        "dashboard_status": controller.state.status,
    }


@app.get("/api/dashboard")
async def dashboard_endpoint():
    """
    Current dashboard.

    Loads the user list on first use (which selects the first user) and
    waits for outstanding fetches before composing the view.
    """
    if not controller.state.users and controller.state.status != "error":
        await controller.list_users()
    await controller.wait_idle()
    return compose(controller.state)


@app.get("/api/users")
async def users_endpoint():
    """Reload and list users."""
    users = await controller.list_users()
    await controller.wait_idle()
    return {"users": [user_option(user) for user in users], "error": controller.state.error}


@app.post("/api/dashboard/select/{user_id}")
async def select_endpoint(user_id: int):
    """Switch the viewed user."""
    task = controller.select_user(user_id)
    if task is None:
        return JSONResponse(status_code=404, content={"error": f"Unknown user {user_id}"})

    await controller.wait_idle()
    return compose(controller.state)


@app.post("/api/dashboard/refresh")
async def refresh_endpoint():
    """Retry loading after an error."""
    logger.info("Manual refresh requested")
    await controller.refresh()
    return compose(controller.state)


@app.post("/api/entries")
async def create_entry_endpoint(payload: dict):
    """Submit a daily progress entry for the selected user."""
    entry = await controller.submit_entry(payload)
    if entry is None:
        return JSONResponse(
            status_code=429, content={"error": "A submission is already in progress."}
        )

    await controller.wait_idle()
    return {
        "message": "Progress saved successfully!",
        "entry": entry.model_dump(mode="json"),
    }


@app.put("/api/entries/{entry_id}")
async def update_entry_endpoint(entry_id: int, payload: dict):
    """Replace an existing entry of the selected user."""
    entry = await controller.submit_entry(payload, entry_id=entry_id)
    if entry is None:
        return JSONResponse(
            status_code=429, content={"error": "A submission is already in progress."}
        )

    await controller.wait_idle()
    return {"message": "Progress updated.", "entry": entry.model_dump(mode="json")}


@app.delete("/api/entries/{entry_id}")
async def delete_entry_endpoint(entry_id: int):
    """Delete an entry."""
    message = await controller.delete_entry(entry_id)
    await controller.wait_idle()
    return {"message": message}


@app.post("/api/auth/login")
async def login_endpoint(body: LoginRequest):
    """Exchange credentials for a token and reload the dashboard."""
    message = await auth.login(body.email, body.password)
    await controller.refresh()
    return {"message": message}


@app.post("/api/auth/logout")
async def logout_endpoint():
    """Forget the stored token."""
    auth.logout()
    return {"message": "Logged out."}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host=settings.server_host,
        port=settings.server_port,
        log_level=settings.log_level.lower(),
    )
