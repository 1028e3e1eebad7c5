"""Pydantic schemas for account endpoints."""

from typing import List

from pydantic import BaseModel, Field

from common.types import AccountType


class RegisterRequest(BaseModel):
    """Request model for account registration."""
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    first_name: str = Field(..., min_length=1)
    account_type: AccountType
    license_key: str
    school_name: str
    class_codes: str = ""


class RegisterResponse(BaseModel):
    """Response model for account registration."""
    message: str
    email: str


class SignInRequest(BaseModel):
    """Request model for sign-in."""
    email: str
    password: str


class AccountSummary(BaseModel):
    email: str
    first_name: str
    account_type: AccountType


class SignInResponse(BaseModel):
    """Response model for sign-in."""
    message: str
    user: AccountSummary


class AccountInfoResponse(BaseModel):
    """Response model for the user-info lookup."""
    first_name: str
    class_codes: List[str]
    school_name: str


class UpdateClassCodeRequest(BaseModel):
    """Request model for adding or removing one class code."""
    email: str = Field(..., min_length=1)
    class_code: str = Field(..., min_length=1)
    action: str = Field(..., pattern="^(add|delete)$")
