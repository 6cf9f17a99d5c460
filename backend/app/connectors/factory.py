"""Builds live, cached connectors for stored accounts."""

from sqlalchemy.orm import Session

from app.connectors.base import BaseTimeTrackingConnector
from app.connectors.cache import CachedConnector, SqlApiCache
from app.connectors.toggl_connector import TogglConnector
from app.models.account import TogglAccount
from app.utils.encrypt import decrypt_token


def get_connector_instance(account: TogglAccount, db: Session) -> BaseTimeTrackingConnector:
    """Toggl connector for a stored account, behind the api_cache table."""
    config = {
        "account_id": account.id,
        "account_name": account.name,
        "api_token": decrypt_token(account.api_token),
    }
    return CachedConnector(TogglConnector(config), SqlApiCache(db))
