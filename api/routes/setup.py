"""
Schema setup endpoints.

GET  /api/v1/setup → does the expense table exist?
POST /api/v1/setup → create the database and table (idempotent), then re-check
"""

from fastapi import APIRouter, Depends

from api.controllers import SchemaSetup
from api.dependencies import get_setup
from api.models import SchemaStatusOut

router = APIRouter(prefix="/setup", tags=["setup"])


def status_out(setup: SchemaSetup) -> SchemaStatusOut:
    catalog = setup.catalog
    return SchemaStatusOut(
        database=catalog.database,
        table=catalog.table,
        objects_exist=bool(setup.objects_exist),
    )


@router.get("", response_model=SchemaStatusOut, summary="Check the expense table")
async def check_schema(setup: SchemaSetup = Depends(get_setup)) -> SchemaStatusOut:
    await setup.check()
    return status_out(setup)


@router.post("", response_model=SchemaStatusOut, summary="Create the expense table")
async def create_schema(setup: SchemaSetup = Depends(get_setup)) -> SchemaStatusOut:
    """Runs CREATE DATABASE / CREATE TABLE IF NOT EXISTS; safe to repeat."""
    await setup.create()
    return status_out(setup)
