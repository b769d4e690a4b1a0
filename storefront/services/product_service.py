# storefront/services/product_service.py
import logging
import uuid
from typing import Iterable

from sqlmodel import Session

from storefront.core.errors import Forbidden, InvalidState, NotFound, ValidationError
from storefront.core.storage_utils import (
    delete_public_urls,
    product_image_path,
    upload_to_storage,
)
from storefront.models.product import Product
from storefront.models.user import User
from storefront.repositories.cart_repo import CartRepository
from storefront.repositories.product_repo import ProductRepository
from storefront.schemas.product import ProductCreate, ProductUpdate

logger = logging.getLogger(__name__)


# --- Image config ---

MAX_IMAGES_PER_PRODUCT = 3
MAX_IMAGE_BYTES = 5 * 1024 * 1024  # 5MB per image

ALLOWED_IMAGE_CONTENT_TYPES: dict[str, str] = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}


class ProductService:
    """
    Business logic for the product catalogue.

    Responsibilities:
      - public listing / detail
      - admin create, update, delete; only the owning admin may modify
      - image validation and upload to Supabase Storage
      - refuse hard deletes of products that historical orders point at
    """

    def __init__(self, repo: ProductRepository, cart_repo: CartRepository):
        self.repo = repo
        self.cart_repo = cart_repo

    # ----- Helpers -----

    @staticmethod
    def _validate_and_get_ext(content_type: str, file_bytes: bytes) -> str:
        if content_type not in ALLOWED_IMAGE_CONTENT_TYPES:
            raise ValidationError("Unsupported image type. Allowed: JPEG, PNG, WEBP.")

        if len(file_bytes) > MAX_IMAGE_BYTES:
            raise ValidationError("Image too large (max 5MB).")

        return ALLOWED_IMAGE_CONTENT_TYPES[content_type]

    def _get_owned(self, session: Session, admin: User, product_id: uuid.UUID) -> Product:
        product = self.get_product(session, product_id)
        if product.admin_id != admin.id:
            raise Forbidden("Not authorized to modify this product")
        return product

    # ----- Products -----

    def list_products(self, session: Session, skip: int = 0, limit: int = 50) -> list[Product]:
        return self.repo.list_products(session, skip=skip, limit=limit)

    def list_for_admin(
        self,
        session: Session,
        admin: User,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Product]:
        return self.repo.list_products(session, skip=skip, limit=limit, admin_id=admin.id)

    def get_product(self, session: Session, product_id: uuid.UUID) -> Product:
        product = self.repo.get_by_id(session, product_id)
        if not product:
            raise NotFound("Product not found")
        return product

    def create_product(
        self,
        session: Session,
        admin: User,
        payload: ProductCreate,
    ) -> Product:
        product = Product(
            admin_id=admin.id,
            name=payload.name,
            description=payload.description,
            quantity=payload.quantity,
            price=payload.price,
            sizes=payload.sizes,
            colors=payload.colors,
        )
        return self.repo.create(session, product)

    def update_product(
        self,
        session: Session,
        admin: User,
        product_id: uuid.UUID,
        payload: ProductUpdate,
    ) -> Product:
        """
        Partial update. Price changes never affect existing orders, whose
        items carry their own unit_price.
        """
        product = self._get_owned(session, admin, product_id)

        for key, value in payload.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(product, key, value)

        return self.repo.update(session, product)

    def delete_product(
        self,
        session: Session,
        admin: User,
        product_id: uuid.UUID,
    ) -> None:
        """
        Delete a product, its cart lines and its stored images.

        Products referenced by any order are kept so order history stays
        resolvable; set their quantity to 0 instead.
        """
        product = self._get_owned(session, admin, product_id)

        if self.repo.is_referenced_by_orders(session, product.id):
            raise InvalidState(
                "Product is referenced by existing orders; set its quantity to 0 instead"
            )

        images = list(product.images)
        self.cart_repo.delete_for_product(session, product.id)
        self.repo.delete(session, product)

        if images:
            delete_public_urls(images)
        logger.info("Product %s deleted by admin %s", product_id, admin.id)

    # ----- Images -----

    def replace_images(
        self,
        session: Session,
        admin: User,
        product_id: uuid.UUID,
        files: Iterable[tuple[str, bytes]],
    ) -> Product:
        """
        Upload 1-3 images and make them the product's image set.

        Args:
            files: iterable of (content_type, file_bytes); the first one
                   becomes the primary image.
        """
        product = self._get_owned(session, admin, product_id)
        files = list(files)

        if not 1 <= len(files) <= MAX_IMAGES_PER_PRODUCT:
            raise ValidationError(f"Please upload 1-{MAX_IMAGES_PER_PRODUCT} images")

        # Validate everything before uploading anything
        exts = [self._validate_and_get_ext(ct, data) for ct, data in files]

        old_images = list(product.images)
        new_images = [
            upload_to_storage(
                product_image_path(product.id, ext),
                data,
                content_type,
            )
            for ext, (content_type, data) in zip(exts, files)
        ]

        product.images = new_images
        product = self.repo.update(session, product)

        if old_images:
            delete_public_urls(old_images)
        return product
