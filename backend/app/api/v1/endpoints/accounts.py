from typing import List
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.connectors.base import BaseTimeTrackingConnector
from app.connectors.cache import SqlApiCache
from app.connectors.factory import get_connector_instance
from app.database import get_db
from app.exceptions import AuthError, ConfigurationError, ConnectorError, RateLimitError
from app.models.account import TogglAccount
from app.schemas.account import AccountCreate, AccountUpdate, AccountInDB, AccountValidationResult
from app.schemas.toggl import Workspace, Client, Project, Tag
from app.utils.encrypt import encrypt_token

log = logging.getLogger(__name__)
router = APIRouter()

MASKED_TOKEN = "********"


def _masked(account: TogglAccount) -> AccountInDB:
    return AccountInDB(
        id=account.id,
        name=account.name,
        api_token=MASKED_TOKEN,
        created_at=account.created_at,
        updated_at=account.updated_at,
    )


def _get_account_or_404(db: Session, account_id: int) -> TogglAccount:
    account = db.query(TogglAccount).filter(TogglAccount.id == account_id).first()
    if account is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")
    return account


def _connector_http_error(account_id: int, e: Exception) -> HTTPException:
    """Translate a connector failure into the HTTP error returned to the caller."""
    if isinstance(e, AuthError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Toggl rejected the API token: {e}")
    if isinstance(e, RateLimitError):
        headers = {"Retry-After": str(int(e.retry_after))} if e.retry_after else None
        return HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=str(e), headers=headers)
    if isinstance(e, ConfigurationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    log.error(f"Toggl request failed for account {account_id}: {e}")
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))


async def _proxy(account_id: int, db: Session, call):
    account = _get_account_or_404(db, account_id)
    connector: BaseTimeTrackingConnector = None
    try:
        connector = get_connector_instance(account, db)
        return await call(connector)
    except (ConnectorError, ConfigurationError) as e:
        raise _connector_http_error(account_id, e)
    finally:
        if connector is not None:
            await connector.close()


@router.post("/", response_model=AccountInDB, status_code=status.HTTP_201_CREATED)
async def create_account(account: AccountCreate, db: Session = Depends(get_db)):
    """Register a Toggl account. The API token is encrypted before storage."""
    if db.query(TogglAccount).filter(TogglAccount.name == account.name).first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Account with this name already exists")

    db_account = TogglAccount(name=account.name, api_token=encrypt_token(account.api_token))
    db.add(db_account)
    db.commit()
    db.refresh(db_account)
    log.info(f"Created account '{db_account.name}' (ID: {db_account.id})")
    return _masked(db_account)


@router.get("/", response_model=List[AccountInDB])
async def read_accounts(skip: int = 0, limit: int = 100, db: Session = Depends(get_db)):
    """Retrieve registered accounts."""
    accounts = db.query(TogglAccount).order_by(TogglAccount.id.asc()).offset(skip).limit(limit).all()
    return [_masked(account) for account in accounts]


@router.get("/{account_id}", response_model=AccountInDB)
async def read_account(account_id: int, db: Session = Depends(get_db)):
    return _masked(_get_account_or_404(db, account_id))


@router.put("/{account_id}", response_model=AccountInDB)
async def update_account(account_id: int, account: AccountUpdate, db: Session = Depends(get_db)):
    """Rename an account or replace its API token. A new token drops the account's cache."""
    db_account = _get_account_or_404(db, account_id)

    update_data = account.model_dump(exclude_unset=True)
    if update_data.get("api_token"):
        update_data["api_token"] = encrypt_token(update_data["api_token"])
        await SqlApiCache(db).clear_account(account_id)

    for key, value in update_data.items():
        if value is not None:
            setattr(db_account, key, value)

    db.commit()
    db.refresh(db_account)
    return _masked(db_account)


@router.delete("/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_account(account_id: int, db: Session = Depends(get_db)):
    """Delete an account together with its report links and cached responses."""
    db_account = _get_account_or_404(db, account_id)
    db.delete(db_account)
    db.commit()
    log.info(f"Deleted account {account_id}")
    return


@router.post("/{account_id}/validate", response_model=AccountValidationResult)
async def validate_account(account_id: int, db: Session = Depends(get_db)):
    """Check the stored token against Toggl."""
    account = _get_account_or_404(db, account_id)
    connector = None
    try:
        connector = get_connector_instance(account, db)
        if not await connector.validate_connection():
            return AccountValidationResult(valid=False, message="Connection failed. Check the API token.")
        identity = await connector.resolve_identity()
        return AccountValidationResult(valid=True, message="Connection successful!", display_name=identity.display_name)
    except (ConnectorError, ConfigurationError) as e:
        return AccountValidationResult(valid=False, message=f"Validation error: {e}")
    finally:
        if connector is not None:
            await connector.close()


@router.get("/{account_id}/workspaces", response_model=List[Workspace])
async def get_workspaces(account_id: int, db: Session = Depends(get_db)):
    return await _proxy(account_id, db, lambda c: c.fetch_workspaces())


@router.get("/{account_id}/workspaces/{workspace_id}/clients", response_model=List[Client])
async def get_clients(account_id: int, workspace_id: int, db: Session = Depends(get_db)):
    return await _proxy(account_id, db, lambda c: c.fetch_clients(workspace_id))


@router.get("/{account_id}/workspaces/{workspace_id}/projects", response_model=List[Project])
async def get_projects(account_id: int, workspace_id: int, db: Session = Depends(get_db)):
    return await _proxy(account_id, db, lambda c: c.fetch_projects(workspace_id))


@router.get("/{account_id}/workspaces/{workspace_id}/tags", response_model=List[Tag])
async def get_tags(account_id: int, workspace_id: int, db: Session = Depends(get_db)):
    return await _proxy(account_id, db, lambda c: c.fetch_tags(workspace_id))


@router.delete("/{account_id}/cache")
async def clear_account_cache(account_id: int, db: Session = Depends(get_db)):
    """Drop every cached Toggl response of an account."""
    _get_account_or_404(db, account_id)
    removed = await SqlApiCache(db).clear_account(account_id)
    log.info(f"Cleared {removed} cache entries of account {account_id}")
    return {"removed": removed}
