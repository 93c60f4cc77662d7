"""
Pydantic schemas for API requests
"""

from decimal import Decimal
from pydantic import BaseModel, Field

# Account numbers are stored as signed 64-bit integers
INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1


class CreateAccountRequest(BaseModel):
    first_name: str = Field(..., alias="firstName", min_length=1, max_length=100)
    last_name: str = Field(..., alias="lastName", min_length=1, max_length=100)


class TransferRequestModel(BaseModel):
    from_account: int = Field(..., alias="fromAccount", ge=INT64_MIN, le=INT64_MAX,
                               description="Source account number")
    to_account: int = Field(..., alias="toAccount", ge=INT64_MIN, le=INT64_MAX,
                             description="Destination account number")
    amount: Decimal = Field(..., description="Amount in major units, e.g. 250.00")
