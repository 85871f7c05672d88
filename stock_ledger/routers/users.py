# stock_ledger/routers/users.py
"""
User management endpoints.

A user is a person whose trades are recorded in the ledger. Deleting a user
deletes their transactions.
"""

import logging

from fastapi import APIRouter, Depends, status

from stock_ledger.dependencies import get_user_store
from stock_ledger.schemas.users import UserCreate, UserResponse, UserUpdate
from stock_ledger.services.store import SqlAlchemyUserStore

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/users",
    tags=["Users"],
)


@router.get("", response_model=list[UserResponse], summary="List users")
def list_users(users: SqlAlchemyUserStore = Depends(get_user_store)) -> list[UserResponse]:
    return [UserResponse.model_validate(user) for user in users.list()]


@router.post(
    "",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a user",
)
def create_user(
        payload: UserCreate,
        users: SqlAlchemyUserStore = Depends(get_user_store),
) -> UserResponse:
    return UserResponse.model_validate(users.add(payload.model_dump()))


@router.get(
    "/{user_id}",
    response_model=UserResponse,
    summary="Get a user",
    responses={404: {"description": "User not found"}},
)
def get_user(user_id: str, users: SqlAlchemyUserStore = Depends(get_user_store)) -> UserResponse:
    return UserResponse.model_validate(users.get(user_id))


@router.patch(
    "/{user_id}",
    response_model=UserResponse,
    summary="Update a user",
    responses={404: {"description": "User not found"}},
)
def update_user(
        user_id: str,
        payload: UserUpdate,
        users: SqlAlchemyUserStore = Depends(get_user_store),
) -> UserResponse:
    patch = payload.model_dump(exclude_unset=True)
    if patch.get("name", "") is None:
        del patch["name"]
    return UserResponse.model_validate(users.update(user_id, patch))


@router.delete(
    "/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a user and their transactions",
    responses={404: {"description": "User not found"}},
)
def delete_user(user_id: str, users: SqlAlchemyUserStore = Depends(get_user_store)) -> None:
    users.delete(user_id)
