"""
Account endpoints
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from .dependencies import BankingSystem, get_banking_system
from .schemas import CreateAccountRequest
from ..storage import StorageError


router = APIRouter()


def error_response(message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": message})


@router.post("")
def create_account(
    request: CreateAccountRequest,
    system: BankingSystem = Depends(get_banking_system)
):
    """Create a new account with a zero balance"""
    try:
        account = system.account_manager.create_account(
            first_name=request.first_name,
            last_name=request.last_name
        )
    except (ValueError, StorageError) as e:
        return error_response(str(e))
    
    return account.to_dict()


@router.get("/{account_id}")
def get_account(
    account_id: int,
    system: BankingSystem = Depends(get_banking_system)
):
    """Get account details"""
    try:
        account = system.account_manager.get_account(account_id)
    except (ValueError, StorageError) as e:
        return error_response(str(e))
    
    return account.to_dict()


@router.delete("/{account_id}")
def delete_account(
    account_id: int,
    system: BankingSystem = Depends(get_banking_system)
):
    """Delete an account"""
    try:
        system.account_manager.delete_account(account_id)
    except (ValueError, StorageError) as e:
        return error_response(str(e))
    
    return {"deleted": account_id}
