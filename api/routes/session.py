"""
Session endpoints: set, replace or clear the MotherDuck credential.

GET    /api/v1/session               → current session state
PUT    /api/v1/session/token         → set token from JSON body
POST   /api/v1/session/token/upload  → set token from a single-line text file
DELETE /api/v1/session/token         → clear the token

The token is held in memory only. Changing it clears the dashboard so data
from the previous session is never shown against the new one.
"""

import logging

from fastapi import APIRouter, Depends, File, UploadFile

from api.controllers import ExpenseDashboard, SchemaSetup
from api.dependencies import get_dashboard, get_gateway, get_setup
from api.gateway import QueryGateway
from api.models import SessionOut, TokenIn

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/session", tags=["session"])

_MAX_TOKEN_FILE_BYTES = 16 * 1024


def session_out(gateway: QueryGateway) -> SessionOut:
    error = gateway.last_error
    return SessionOut(
        state=gateway.state.value,
        generation=gateway.generation,
        configured=gateway.configured,
        error=error.message if error else None,
    )


def apply_token(token: str, gateway: QueryGateway, dashboard: ExpenseDashboard,
                setup: SchemaSetup) -> SessionOut:
    """Swap the credential and drop view state from the old session."""
    gateway.set_token(token)
    dashboard.clear()
    setup.objects_exist = None
    return session_out(gateway)


def read_token_file(content: bytes) -> str:
    """Extract the token from an uploaded single-line text file.

    Raises:
        ValueError: Empty, oversized, non-UTF-8 or multi-line content.
    """
    if len(content) > _MAX_TOKEN_FILE_BYTES:
        raise ValueError("Token file is too large")
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise ValueError("Token file must be UTF-8 text") from None
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    if not lines:
        raise ValueError("Token file is empty")
    if len(lines) > 1:
        raise ValueError("Token file must contain a single line")
    return lines[0]


@router.get("", response_model=SessionOut, summary="Session state")
def get_session(gateway: QueryGateway = Depends(get_gateway)) -> SessionOut:
    return session_out(gateway)


@router.put("/token", response_model=SessionOut, summary="Set the MotherDuck token")
async def set_token(
    body: TokenIn,
    gateway: QueryGateway = Depends(get_gateway),
    dashboard: ExpenseDashboard = Depends(get_dashboard),
    setup: SchemaSetup = Depends(get_setup),
) -> SessionOut:
    """Start a new session; an empty token clears it."""
    return apply_token(body.token, gateway, dashboard, setup)


@router.post("/token/upload", response_model=SessionOut, summary="Upload a token file")
async def upload_token(
    file: UploadFile = File(..., description="Text file containing only the token"),
    gateway: QueryGateway = Depends(get_gateway),
    dashboard: ExpenseDashboard = Depends(get_dashboard),
    setup: SchemaSetup = Depends(get_setup),
) -> SessionOut:
    token = read_token_file(await file.read())
    logger.info("Token loaded from uploaded file %s", file.filename)
    return apply_token(token, gateway, dashboard, setup)


@router.delete("/token", response_model=SessionOut, summary="Clear the token")
async def clear_token(
    gateway: QueryGateway = Depends(get_gateway),
    dashboard: ExpenseDashboard = Depends(get_dashboard),
    setup: SchemaSetup = Depends(get_setup),
) -> SessionOut:
    return apply_token("", gateway, dashboard, setup)
