"""Category endpoints for the resolved shop."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from pos_service.api.dependencies.common import get_tenant_session
from pos_service.schemas.product import CategoryCollectionResponse
from pos_service.services.catalog_service import CatalogService

router = APIRouter(prefix="/categories", tags=["Categories"])


@router.get("", response_model=CategoryCollectionResponse)
async def list_categories(session: AsyncSession = Depends(get_tenant_session)):
    """List active categories in display order."""
    categories = await CatalogService(session).list_categories()
    return CategoryCollectionResponse(
        data=[
            {
                "type": "category",
                "id": category.id,
                "attributes": {k: v for k, v in category.to_dict().items() if k != "id"}
            }
            for category in categories
        ],
        meta={"total": len(categories)}
    )
