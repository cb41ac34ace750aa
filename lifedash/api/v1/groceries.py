"""Grocery list API routes."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from lifedash.api.deps import get_current_user_id
from lifedash.api.v1.common import data_response
from lifedash.core.db import get_session
from lifedash.models import GroceryItem
from lifedash.schemas import GroceryItemCreate, GroceryItemRead, GroceryItemUpdate

router = APIRouter(prefix="/groceries", tags=["groceries"])


@router.get("")
async def list_items(
    purchased: bool | None = None,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
) -> dict[str, list[GroceryItemRead]]:
    """List grocery items newest first."""

    stmt = select(GroceryItem).where(GroceryItem.user_id == user_id)
    if purchased is not None:
        stmt = stmt.where(GroceryItem.purchased.is_(purchased))
    stmt = stmt.order_by(GroceryItem.created_at.desc(), GroceryItem.id.desc())
    result = await session.execute(stmt)
    return data_response([GroceryItemRead.model_validate(item) for item in result.scalars()])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_item(
    payload: GroceryItemCreate,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
) -> dict[str, GroceryItemRead]:
    """Add an item to the list."""

    item = GroceryItem(user_id=user_id, name=payload.name)
    session.add(item)
    await session.commit()
    await session.refresh(item)
    return data_response(GroceryItemRead.model_validate(item))


@router.put("/{item_id}")
async def update_item(
    item_id: int,
    payload: GroceryItemUpdate,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
) -> dict[str, GroceryItemRead]:
    """Rename an item or mark it purchased."""

    item = await _get_item_or_404(session, user_id, item_id)
    for field, value in payload.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(item, field, value)
    await session.commit()
    await session.refresh(item)
    return data_response(GroceryItemRead.model_validate(item))


@router.post("/{item_id}/toggle")
async def toggle_item(
    item_id: int,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
) -> dict[str, GroceryItemRead]:
    """Flip the purchased flag."""

    item = await _get_item_or_404(session, user_id, item_id)
    item.purchased = not item.purchased
    await session.commit()
    await session.refresh(item)
    return data_response(GroceryItemRead.model_validate(item))


@router.delete("/purchased")
async def clear_purchased(
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
) -> dict[str, dict[str, int]]:
    """Remove every purchased item."""

    result = await session.execute(
        delete(GroceryItem).where(
            GroceryItem.user_id == user_id, GroceryItem.purchased.is_(True)
        )
    )
    await session.commit()
    return data_response({"deleted": result.rowcount or 0})


@router.delete("/{item_id}")
async def delete_item(
    item_id: int,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
) -> dict[str, dict[str, bool]]:
    """Delete a single item."""

    item = await _get_item_or_404(session, user_id, item_id)
    await session.delete(item)
    await session.commit()
    return data_response({"deleted": True})


async def _get_item_or_404(session: AsyncSession, user_id: str, item_id: int) -> GroceryItem:
    item = await session.get(GroceryItem, item_id)
    if item is None or item.user_id != user_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Grocery item not found")
    return item
