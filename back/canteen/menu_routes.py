from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel import Session, select

from . import models
from .catalog import find_menu_item
from .db import get_session
from .security import require_admin

router = APIRouter()


@router.get("")
def list_menu(
    category: str | None = Query(None),
    available: bool | None = Query(None, description="Only available items when true"),
    session: Session = Depends(get_session)
) -> list[models.MenuItem]:
    statement = select(models.MenuItem)
    if category:
        statement = statement.where(models.MenuItem.category == category)
    if available:
        statement = statement.where(models.MenuItem.is_available == True)  # noqa: E712
    statement = statement.order_by(models.MenuItem.category, models.MenuItem.name)
    return list(session.exec(statement).all())


@router.get("/{menu_item_id}")
def get_menu_item(
    menu_item_id: int,
    session: Session = Depends(get_session)
) -> models.MenuItem:
    menu_item = find_menu_item(session, menu_item_id)
    if not menu_item:
        raise HTTPException(status_code=404, detail="Menu item not found")
    return menu_item


@router.post("", status_code=status.HTTP_201_CREATED)
def create_menu_item(
    item: models.MenuItemCreate,
    current_user: Annotated[models.User, Depends(require_admin)],
    session: Session = Depends(get_session)
) -> models.MenuItem:
    menu_item = models.MenuItem(
        name=item.name.strip(),
        category=item.category.strip(),
        description=item.description.strip(),
        price_cents=item.price_cents,
        image=item.image or "",
        is_available=item.is_available,
    )
    session.add(menu_item)
    session.commit()
    session.refresh(menu_item)
    return menu_item


@router.put("/{menu_item_id}")
def update_menu_item(
    menu_item_id: int,
    item_update: models.MenuItemUpdate,
    current_user: Annotated[models.User, Depends(require_admin)],
    session: Session = Depends(get_session)
) -> models.MenuItem:
    """Edit a menu item. Orders already placed keep their own name/price copy."""
    menu_item = find_menu_item(session, menu_item_id)
    if not menu_item:
        raise HTTPException(status_code=404, detail="Menu item not found")

    if item_update.name:
        menu_item.name = item_update.name.strip()
    if item_update.category:
        menu_item.category = item_update.category.strip()
    if item_update.description:
        menu_item.description = item_update.description.strip()
    if item_update.price_cents is not None:
        menu_item.price_cents = item_update.price_cents
    if item_update.image is not None:
        menu_item.image = item_update.image
    if item_update.is_available is not None:
        menu_item.is_available = item_update.is_available
    menu_item.updated_at = models.utcnow()

    session.add(menu_item)
    session.commit()
    session.refresh(menu_item)
    return menu_item


@router.delete("/{menu_item_id}")
def delete_menu_item(
    menu_item_id: int,
    current_user: Annotated[models.User, Depends(require_admin)],
    session: Session = Depends(get_session)
) -> dict:
    menu_item = find_menu_item(session, menu_item_id)
    if not menu_item:
        raise HTTPException(status_code=404, detail="Menu item not found")

    session.delete(menu_item)
    session.commit()
    return {"status": "deleted", "id": menu_item_id}
