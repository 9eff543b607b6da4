from fastapi import APIRouter, Depends, Query
from typing import Optional

from premiads.core.exceptions import MissionWorkflowError, Unauthenticated
from premiads.models.auth.user import Caller
from premiads.routes.auth.dependencies import get_current_caller, get_database
from premiads.services.missions.wallet_service import WalletService
from premiads.utils.response import success_response, workflow_error_response

router = APIRouter(prefix="/rewards", tags=["Rewards"])


@router.get("/me")
async def get_my_rewards(
    current_caller: Optional[Caller] = Depends(get_current_caller),
    db=Depends(get_database)
):
    """Get balances and reward history of the current user"""
    try:
        if current_caller is None:
            raise Unauthenticated()
        rewards = await WalletService(db).list_user_rewards(current_caller.user_id)
    except MissionWorkflowError as e:
        return workflow_error_response(e)

    return success_response(message="Rewards retrieved successfully", data=rewards)


@router.get("/me/badges")
async def get_my_badges(
    current_caller: Optional[Caller] = Depends(get_current_caller),
    db=Depends(get_database)
):
    try:
        if current_caller is None:
            raise Unauthenticated()
        badges = await WalletService(db).list_user_badges(current_caller.user_id)
    except MissionWorkflowError as e:
        return workflow_error_response(e)

    return success_response(message="Badges retrieved successfully", data={"badges": badges})


@router.get("/me/loot-boxes")
async def get_my_loot_boxes(
    claimed: Optional[bool] = Query(None),
    current_caller: Optional[Caller] = Depends(get_current_caller),
    db=Depends(get_database)
):
    try:
        if current_caller is None:
            raise Unauthenticated()
        loot_boxes = await WalletService(db).list_loot_boxes(current_caller.user_id, claimed=claimed)
    except MissionWorkflowError as e:
        return workflow_error_response(e)

    return success_response(message="Loot boxes retrieved successfully", data={"loot_boxes": loot_boxes})


@router.post("/loot-boxes/{loot_box_id}/claim")
async def claim_loot_box(
    loot_box_id: str,
    current_caller: Optional[Caller] = Depends(get_current_caller),
    db=Depends(get_database)
):
    """Open a loot box; raffle tickets and credit bonuses are added to the wallet"""
    try:
        loot_box = await WalletService(db).claim_loot_box(current_caller, loot_box_id)
    except MissionWorkflowError as e:
        return workflow_error_response(e)

    return success_response(message="Loot box opened!", data=loot_box)
