"""Account API routes."""

from typing import List

from fastapi import APIRouter, HTTPException, Query, status

from mediaserver.auth import hash_password
from mediaserver.config import VALID_SCHOOL_NAMES
from mediaserver.schemas.accounts import (
    AccountInfoResponse,
    AccountSummary,
    RegisterRequest,
    RegisterResponse,
    SignInRequest,
    SignInResponse,
    UpdateClassCodeRequest
)
from mediaserver.schemas.common import ErrorResponse, MessageResponse
from mediaserver.service_locator import get_account_service
from mediaserver.utils import parse_class_codes

router = APIRouter(
    prefix="/accounts",
    tags=["Accounts"],
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
    },
)


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(request: RegisterRequest):
    """
    Register a new account against a license key.

    Parameters:
        - email: Unique email address
        - password: Account password (hashed before storage)
        - first_name: Display name
        - account_type: "student" or "teacher"
        - license_key: Provisioning key; must allow the account type
        - school_name: One of the configured schools
        - class_codes: Comma-separated class codes (e.g., "X1,X2")

    Returns:
        - message: Confirmation text
        - email: Registered email

    Raises:
        - 400: Invalid school name, invalid license key or license quota reached
        - 409: Email already in use
        - 500: Internal server error
    """
    if request.school_name not in VALID_SCHOOL_NAMES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid school name."
        )

    account_service = get_account_service()
    account = account_service.create_account(
        email=request.email,
        password_hash=hash_password(request.password),
        first_name=request.first_name,
        account_type=request.account_type.value,
        license_key=request.license_key,
        school_name=request.school_name,
        class_codes=parse_class_codes(request.class_codes),
    )

    return RegisterResponse(message="Registration successful!", email=account.email)


@router.post("/sign-in", response_model=SignInResponse)
async def sign_in(request: SignInRequest):
    """
    Check an email and password.

    Returns:
        - message: Confirmation text
        - user: email, first name and account type

    Raises:
        - 401: Invalid email or password
    """
    account = get_account_service().authenticate(request.email, request.password)

    return SignInResponse(
        message="Sign-in successful!",
        user=AccountSummary(
            email=account.email,
            first_name=account.first_name,
            account_type=account.account_type,
        ),
    )


@router.get("/info", response_model=AccountInfoResponse)
async def account_info(email: str = Query(..., min_length=1)):
    """
    Look up the display name, class codes and school of an account.

    Raises:
        - 404: User not found
    """
    account = get_account_service().get_account(email)

    return AccountInfoResponse(
        first_name=account.first_name[:1].upper() + account.first_name[1:],
        class_codes=sorted(account.class_codes),
        school_name=account.school_name,
    )


@router.get("/class-codes", response_model=List[str])
async def list_class_codes(email: str = Query(..., min_length=1)):
    """
    List the class codes held by an account.

    Raises:
        - 404: User not found
    """
    account = get_account_service().get_account(email)
    return sorted(account.class_codes)


@router.put("/class-codes", response_model=MessageResponse)
async def update_class_codes(request: UpdateClassCodeRequest):
    """
    Add or remove one class code.

    Parameters:
        - email: Account email
        - class_code: Code to add or remove
        - action: "add" (idempotent) or "delete"

    Raises:
        - 400: Class code is blank, or the account does not hold the code being deleted
        - 404: User not found
    """
    account_service = get_account_service()

    if request.action == "add":
        account_service.add_class_code(request.email, request.class_code)
        return MessageResponse(message="Class code added successfully!")

    account_service.remove_class_code(request.email, request.class_code)
    return MessageResponse(message="Class code deleted successfully!")


@router.delete("", response_model=MessageResponse)
async def delete_account(email: str = Query(..., min_length=1)):
    """
    Delete an account and every video it owns.

    Raises:
        - 404: User not found
    """
    removed = get_account_service().delete_account(email)
    return MessageResponse(message=f"Account deleted successfully ({removed} videos removed)")
