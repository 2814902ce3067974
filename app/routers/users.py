from fastapi import APIRouter, Depends

from app.deps import get_current_clerk_id
from app.models.user import UserUpdate
from app.services import users as user_service

router = APIRouter()


@router.get("/me")
async def users_me(clerk_id: str = Depends(get_current_clerk_id)):
    """Return the signed-in user's record."""
    result = await user_service.get_user_by_id(clerk_id)
    return {"user": result.unwrap()}


@router.patch("/me")
async def users_update_me(body: UserUpdate, clerk_id: str = Depends(get_current_clerk_id)):
    """Apply a partial update to the signed-in user's record."""
    result = await user_service.update_user(clerk_id, body.model_dump(exclude_unset=True))
    return {"user": result.unwrap()}


@router.delete("/me")
async def users_delete_me(clerk_id: str = Depends(get_current_clerk_id)):
    """Delete the signed-in user's record and return it."""
    result = await user_service.delete_user(clerk_id)
    return {"user": result.unwrap()}


@router.get("/me/credits")
async def users_me_credits(clerk_id: str = Depends(get_current_clerk_id)):
    """Return current credit balance."""
    user = (await user_service.get_user_by_id(clerk_id)).unwrap()
    return {"balance": user["credit_balance"]}
