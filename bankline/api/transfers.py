"""
Transfer endpoints
"""

from fastapi import APIRouter, Depends

from .accounts import error_response
from .dependencies import BankingSystem, get_banking_system
from .schemas import TransferRequestModel
from ..transfers import TransferError, TransferRequest


router = APIRouter()


@router.post("")
def transfer(
    request: TransferRequestModel,
    system: BankingSystem = Depends(get_banking_system)
):
    """Move funds between two accounts"""
    try:
        receipt = system.transfer_engine.execute(TransferRequest(
            from_account=request.from_account,
            to_account=request.to_account,
            amount=request.amount
        ))
    except TransferError as e:
        return error_response(str(e))
    
    return receipt.to_dict()
