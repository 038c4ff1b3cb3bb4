"""Directory Lookups - patron and catalog lookup by barcode.

Invariants:
    - get_*_or_404 return the record or raise ResourceNotFoundError
    - Lookups are plain reads; callers decide on locking via conditional UPDATEs
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shelfwise.core.errors import ErrorContext, ResourceNotFoundError
from shelfwise.models.item import Item
from shelfwise.models.patron import Patron


async def get_patron_or_404(db: AsyncSession, barcode: str) -> Patron:
    result = await db.execute(select(Patron).where(Patron.barcode == barcode))
    patron = result.scalar_one_or_none()
    if not patron:
        raise ResourceNotFoundError(
            "Patron", barcode, ErrorContext(patron_barcode=barcode),
        )
    return patron


async def get_item_or_404(db: AsyncSession, barcode: str) -> Item:
    result = await db.execute(select(Item).where(Item.barcode == barcode))
    item = result.scalar_one_or_none()
    if not item:
        raise ResourceNotFoundError(
            "Item", barcode, ErrorContext(item_barcode=barcode),
        )
    return item
