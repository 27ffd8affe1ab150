"""Shared FastAPI dependencies used across route modules."""

from fastapi import Request

from auth import get_current_wallet, get_optional_wallet
from domain_cache import DomainCache
from engagement import EngagementReconciler
from pinning import PinningClient


def get_cache(request: Request) -> DomainCache:
    return request.app.state.cache


def get_reconciler(request: Request) -> EngagementReconciler:
    return request.app.state.reconciler


def get_pinning(request: Request) -> PinningClient:
    return request.app.state.pinning


__all__ = [
    "get_cache",
    "get_reconciler",
    "get_pinning",
    "get_current_wallet",
    "get_optional_wallet",
]
