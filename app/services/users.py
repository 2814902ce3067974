"""User record operations: create, read, update, delete and credit adjustment.

Every operation connects (or reuses the connection) first and returns a
``Result``: the serialised user on success, or a typed AppError. Store and
validation failures are logged here and never raised to the caller.
"""

import functools
from typing import Any, Awaitable, Callable, Mapping

from beanie import PydanticObjectId, UpdateResponse
from beanie.operators import Inc, Set
from bson.errors import InvalidId
from pydantic import ValidationError as PydanticValidationError
from pymongo.errors import DuplicateKeyError, PyMongoError

from app.core.exceptions import AppError, NotFoundError, StoreFault, ValidationError
from app.core.logging import get_logger
from app.core.result import Result
from app.db.init import connect_to_database
from app.models.user import User, UserCreate, UserUpdate, utcnow
from app.services.revalidation import revalidate_path

log = get_logger(__name__)

# Rendered path invalidated after a user is removed.
REVALIDATE_ON_DELETE = "/"

UserResult = Result[dict[str, Any]]


def fail_soft(operation: Callable[..., Awaitable[dict[str, Any]]]) -> Callable[..., Awaitable[UserResult]]:
    """Connect, run the operation and fold store and validation failures into a Result."""

    @functools.wraps(operation)
    async def wrapper(*args, **kwargs) -> UserResult:
        try:
            await connect_to_database()
            return Result.success(await operation(*args, **kwargs))
        except PydanticValidationError as e:
            error = ValidationError(
                "Invalid user fields",
                details={"errors": e.errors(include_url=False, include_context=False, include_input=False)},
            )
        except DuplicateKeyError:
            error = ValidationError("User already exists")
        except PyMongoError as e:
            log.exception("user_store_fault", operation=operation.__name__)
            error = StoreFault(str(e))
        except AppError as e:
            error = e
        log.warning(
            "user_operation_failed",
            operation=operation.__name__,
            code=error.code,
            message=error.message,
        )
        return Result.failure(error)

    return wrapper


@fail_soft
async def create_user(params: Mapping[str, Any]) -> dict[str, Any]:
    data = UserCreate.model_validate(dict(params))
    user = User(**data.model_dump())
    await user.insert()
    log.info("user_created", user_id=str(user.id), clerk_id=user.clerk_id)
    return user.to_public()


@fail_soft
async def get_user_by_id(clerk_id: str) -> dict[str, Any]:
    """Look a user up by Clerk id, not by the internal id."""
    user = await User.find_one(User.clerk_id == clerk_id)
    if not user:
        raise NotFoundError("User not found")
    return user.to_public()


@fail_soft
async def update_user(clerk_id: str, fields: Mapping[str, Any]) -> dict[str, Any]:
    changes = UserUpdate.model_validate(dict(fields)).model_dump(exclude_unset=True)
    changes["updated_at"] = utcnow()
    user = await User.find_one(User.clerk_id == clerk_id).update(
        Set(changes), response_type=UpdateResponse.NEW_DOCUMENT
    )
    if not user:
        raise NotFoundError("User not found")
    log.info("user_updated", user_id=str(user.id), fields=sorted(changes))
    return user.to_public()


@fail_soft
async def delete_user(clerk_id: str) -> dict[str, Any]:
    user = await User.find_one(User.clerk_id == clerk_id)
    if not user:
        raise NotFoundError("User not found")
    result = await user.delete()
    # Another caller removed it between the lookup and the delete.
    if not result or result.deleted_count == 0:
        raise NotFoundError("User not found")
    log.info("user_deleted", user_id=str(user.id), clerk_id=clerk_id)
    await revalidate_path(REVALIDATE_ON_DELETE)
    return user.to_public()


@fail_soft
async def update_credits(user_id: str | PydanticObjectId, delta: int) -> dict[str, Any]:
    """Add ``delta`` (negative to deduct) to the balance of the user with this internal id."""
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise ValidationError("Credit delta must be an integer")
    try:
        oid = PydanticObjectId(user_id)
    except (InvalidId, TypeError):
        raise NotFoundError("User not found") from None
    user = await User.find_one(User.id == oid).update(
        Inc({User.credit_balance: delta}),
        Set({User.updated_at: utcnow()}),
        response_type=UpdateResponse.NEW_DOCUMENT,
    )
    if not user:
        raise NotFoundError("User not found")
    log.info("user_credits_updated", user_id=str(user.id), delta=delta, balance=user.credit_balance)
    return user.to_public()
