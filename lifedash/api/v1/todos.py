"""To-do and category API routes."""
from __future__ import annotations

import random

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from lifedash.api.deps import get_current_user_id
from lifedash.api.v1.common import data_response
from lifedash.core.db import get_session
from lifedash.models import Category, Todo
from lifedash.schemas import (
    CategoryCreate,
    CategoryRead,
    CategoryUpdate,
    TodoCreate,
    TodoRead,
    TodoUpdate,
)

router = APIRouter(tags=["todos"])


def random_color() -> str:
    return f"#{random.randint(0, 0xFFFFFF):06x}"


@router.get("/categories")
async def list_categories(
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
) -> dict[str, list[CategoryRead]]:
    """List the user's categories by name."""

    result = await session.execute(
        select(Category).where(Category.user_id == user_id).order_by(Category.name)
    )
    payload = [CategoryRead.model_validate(category) for category in result.scalars()]
    return data_response(payload)


@router.post("/categories", status_code=status.HTTP_201_CREATED)
async def create_category(
    payload: CategoryCreate,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
) -> dict[str, CategoryRead]:
    """Create a category; names are unique per user."""

    category = Category(user_id=user_id, name=payload.name, color=payload.color or random_color())
    session.add(category)
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise _duplicate_category() from exc
    await session.refresh(category)
    return data_response(CategoryRead.model_validate(category))


@router.put("/categories/{category_id}")
async def update_category(
    category_id: int,
    payload: CategoryUpdate,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
) -> dict[str, CategoryRead]:
    """Rename or recolor a category."""

    category = await _get_category_or_404(session, user_id, category_id)
    for field, value in payload.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(category, field, value)
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise _duplicate_category() from exc
    await session.refresh(category)
    return data_response(CategoryRead.model_validate(category))


@router.delete("/categories/{category_id}")
async def delete_category(
    category_id: int,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
) -> dict[str, dict[str, bool]]:
    """Delete a category; its to-dos become uncategorized."""

    category = await _get_category_or_404(session, user_id, category_id)
    await session.execute(
        update(Todo).where(Todo.category_id == category.id).values(category_id=None)
    )
    await session.delete(category)
    await session.commit()
    return data_response({"deleted": True})


@router.get("/todos")
async def list_todos(
    completed: bool | None = None,
    category_id: int | None = None,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
) -> dict[str, list[TodoRead]]:
    """List to-dos newest first with optional filters."""

    stmt = select(Todo).options(selectinload(Todo.category)).where(Todo.user_id == user_id)
    if completed is not None:
        stmt = stmt.where(Todo.completed.is_(completed))
    if category_id is not None:
        stmt = stmt.where(Todo.category_id == category_id)

    stmt = stmt.order_by(Todo.created_at.desc(), Todo.id.desc())
    result = await session.execute(stmt)
    payload = [TodoRead.model_validate(todo) for todo in result.scalars()]
    return data_response(payload)


@router.post("/todos", status_code=status.HTTP_201_CREATED)
async def create_todo(
    payload: TodoCreate,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
) -> dict[str, TodoRead]:
    """Create a to-do."""

    if payload.category_id is not None:
        await _get_category_or_404(session, user_id, payload.category_id)

    todo = Todo(user_id=user_id, **payload.model_dump())
    session.add(todo)
    await session.commit()
    todo = await _get_todo_or_404(session, user_id, todo.id)
    return data_response(TodoRead.model_validate(todo))


@router.put("/todos/{todo_id}")
async def update_todo(
    todo_id: int,
    payload: TodoUpdate,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
) -> dict[str, TodoRead]:
    """Update a to-do; an explicit null category clears it."""

    todo = await _get_todo_or_404(session, user_id, todo_id)
    updates = payload.model_dump(exclude_unset=True)
    if updates.get("category_id") is not None:
        await _get_category_or_404(session, user_id, updates["category_id"])
    if "title" in updates and updates["title"] is None:
        updates.pop("title")
    if "completed" in updates and updates["completed"] is None:
        updates.pop("completed")

    for field, value in updates.items():
        setattr(todo, field, value)

    await session.commit()
    todo = await _get_todo_or_404(session, user_id, todo_id)
    return data_response(TodoRead.model_validate(todo))


@router.delete("/todos/{todo_id}")
async def delete_todo(
    todo_id: int,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
) -> dict[str, dict[str, bool]]:
    """Delete a to-do."""

    todo = await _get_todo_or_404(session, user_id, todo_id)
    await session.delete(todo)
    await session.commit()
    return data_response({"deleted": True})


async def _get_category_or_404(session: AsyncSession, user_id: str, category_id: int) -> Category:
    category = await session.get(Category, category_id)
    if category is None or category.user_id != user_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")
    return category


async def _get_todo_or_404(session: AsyncSession, user_id: str, todo_id: int) -> Todo:
    todo = await session.get(
        Todo, todo_id, options=(selectinload(Todo.category),), populate_existing=True
    )
    if todo is None or todo.user_id != user_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="To-do not found")
    return todo


def _duplicate_category() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={"code": "CATEGORY_EXISTS", "message": "A category with this name already exists"},
    )
