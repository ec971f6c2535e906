"""Sale endpoints for the resolved shop."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from pos_service.api.dependencies.common import get_tenant_session
from pos_service.core.roles import SALES_ROLES
from pos_service.middleware.auth import Identity, require_roles
from pos_service.models.sale import Sale
from pos_service.schemas.sale import SaleCreateRequest, SaleResponse
from pos_service.services.sale_service import (
    InsufficientStockError,
    InvalidDiscountError,
    ProductNotFoundError,
    SaleLine,
    SaleService,
    SellerNotFoundError,
)

router = APIRouter(prefix="/sales", tags=["Sales"])


def sale_resource(sale: Sale) -> dict:
    return {
        "type": "sale",
        "id": sale.id,
        "attributes": {
            "sale_number": sale.sale_number,
            "bill_number": sale.bill.bill_number if sale.bill else None,
            "user_id": sale.user_id,
            "subtotal": sale.subtotal,
            "discount": sale.discount,
            "total_amount": sale.total_amount,
            "payment_method": sale.payment_method,
            "items": [item.to_dict() for item in sale.items],
            "created_at": sale.created_at,
        }
    }


@router.post("", response_model=SaleResponse, status_code=status.HTTP_201_CREATED)
async def create_sale(
    request: SaleCreateRequest,
    identity: Identity = Depends(require_roles(*SALES_ROLES)),
    session: AsyncSession = Depends(get_tenant_session),
):
    """
    Ring up a sale.

    Stock, stock movements, the sale and its bill are written in one
    transaction; a failing line leaves the shop's data untouched.
    """
    attributes = request.data.attributes
    lines = [
        SaleLine(product_id=item.product_id, quantity=item.quantity, discount=item.discount)
        for item in attributes.items
    ]
    try:
        sale = await SaleService(session).create_sale(
            user_id=identity.user_id,
            lines=lines,
            payment_method=attributes.payment_method,
            discount=attributes.discount,
        )
    except InsufficientStockError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": str(e), "code": "INSUFFICIENT_STOCK"}
        )
    except ProductNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": str(e), "code": "PRODUCT_NOT_FOUND"}
        )
    except SellerNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": str(e), "code": "SELLER_NOT_FOUND"}
        )
    except InvalidDiscountError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": str(e), "code": "INVALID_DISCOUNT"}
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": str(e), "code": "INVALID_SALE"}
        )
    return SaleResponse(data=sale_resource(sale))
