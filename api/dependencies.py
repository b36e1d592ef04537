"""Request-scoped access to the objects wired in create_app()."""

from fastapi import Request

from core.config import Settings
from core.observability.metrics import SyncStatsCollector
from reconciliation.engine import Synchronizer
from storage.repository import LedgerRepository


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_repository(request: Request) -> LedgerRepository:
    return request.app.state.repository


def get_stats(request: Request) -> SyncStatsCollector:
    return request.app.state.stats


def get_synchronizer(request: Request) -> Synchronizer:
    return request.app.state.synchronizer
