# storefront/routers/products.py
import uuid

from fastapi import APIRouter, Depends, File, UploadFile, status
from sqlmodel import Session

from storefront.core.auth import require_admin
from storefront.core.errors import ValidationError
from storefront.database import get_session
from storefront.models.user import User
from storefront.repositories.cart_repo import CartRepository
from storefront.repositories.product_repo import ProductRepository
from storefront.schemas.product import ProductCreate, ProductRead, ProductUpdate
from storefront.services.product_service import ProductService

router = APIRouter(prefix="/products", tags=["Products"])

repo = ProductRepository()
service = ProductService(repo, CartRepository())


# -------- Public endpoints --------


@router.get("", response_model=list[ProductRead])
def list_products(
    session: Session = Depends(get_session),
    skip: int = 0,
    limit: int = 50,
):
    """
    List products, newest first.

    - Public endpoint.
    """
    return service.list_products(session, skip=skip, limit=limit)


# Declared before /{product_id} so "mine" is not parsed as an id.
@router.get("/mine", response_model=list[ProductRead])
def list_my_products(
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
    skip: int = 0,
    limit: int = 50,
):
    """
    Products created by the calling admin.
    """
    return service.list_for_admin(session, admin, skip=skip, limit=limit)


@router.get("/{product_id}", response_model=ProductRead)
def get_product(
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """
    Get a single product by id.

    - Public endpoint.
    """
    return service.get_product(session, product_id)


# -------- Admin endpoints --------


@router.post("", response_model=ProductRead, status_code=status.HTTP_201_CREATED)
def create_product(
    payload: ProductCreate,
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
):
    """
    Create a new product owned by the calling admin.
    """
    return service.create_product(session, admin, payload)


@router.patch("/{product_id}", response_model=ProductRead)
def update_product(
    product_id: uuid.UUID,
    payload: ProductUpdate,
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
):
    """
    Update a product (owning admin only).
    """
    return service.update_product(session, admin, product_id, payload)


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_product(
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
):
    """
    Delete a product, its cart lines and its images (owning admin only).

    Products that appear in orders cannot be deleted.
    """
    service.delete_product(session, admin, product_id)
    return None


@router.post(
    "/{product_id}/images",
    response_model=ProductRead,
    summary="Upload 1-3 images, replacing the current set",
)
def upload_images(
    product_id: uuid.UUID,
    files: list[UploadFile] = File(...),
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
):
    """
    Replace the product's images.

    - Accepts JPEG, PNG, WEBP up to 5MB each.
    - The first file becomes the primary image shown in carts and orders.
    """
    payload: list[tuple[str, bytes]] = []
    for f in files:
        if not f.content_type:
            raise ValidationError("Missing content-type for one of the uploaded files")
        payload.append((f.content_type, f.file.read()))

    return service.replace_images(session, admin, product_id, payload)
