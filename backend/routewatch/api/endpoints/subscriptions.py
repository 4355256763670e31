from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from routewatch.core.database import get_db
from routewatch.core.security import CurrentUser, get_current_user
from routewatch.schemas.subscription import (
    MessageResponse,
    SubscriptionCreate,
    SubscriptionResponse,
    SubscriptionUpdate,
)
from routewatch.services.subscriptions import (
    InvalidSubscriptionError,
    SubscriptionConflictError,
    SubscriptionNotFoundError,
    create_subscription,
    delete_subscription,
    list_subscriptions_for_user,
    update_subscription,
)


router = APIRouter(dependencies=[Depends(get_current_user)])

CONFLICT_DETAIL = "Active subscription already exists for this route and datetime"


@router.post("/subscriptions", response_model=SubscriptionResponse, status_code=201)
def create(
    body: SubscriptionCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        return create_subscription(db, body, user_id=current_user.id)
    except SubscriptionConflictError:
        raise HTTPException(status_code=409, detail=CONFLICT_DETAIL)


@router.get("/subscriptions/{user_id}", response_model=list[SubscriptionResponse])
def list_for_user(user_id: str, db: Session = Depends(get_db)):
    return list_subscriptions_for_user(db, user_id)


@router.put("/subscriptions/{subscription_id}", response_model=SubscriptionResponse)
def update(subscription_id: str, body: SubscriptionUpdate, db: Session = Depends(get_db)):
    try:
        return update_subscription(db, subscription_id, body)
    except SubscriptionNotFoundError:
        raise HTTPException(status_code=404, detail="Subscription not found")
    except InvalidSubscriptionError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except SubscriptionConflictError:
        raise HTTPException(status_code=409, detail=CONFLICT_DETAIL)


@router.delete("/subscriptions/{subscription_id}", response_model=MessageResponse)
def delete(subscription_id: str, db: Session = Depends(get_db)):
    delete_subscription(db, subscription_id)
    return {"message": "Subscription deleted successfully"}
