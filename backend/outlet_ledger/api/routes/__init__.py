"""API routes."""

from fastapi import APIRouter

from outlet_ledger.api.routes import live_inventory

api_router = APIRouter()

api_router.include_router(live_inventory.router, prefix="/live-inventory", tags=["live-inventory"])
