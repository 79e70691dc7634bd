"""
# `profiti/routers/products.py`: Products (produits)

## Buyer side
- `GET /products`: catalogue joined with shop name and location. The position comes from the
  query string, else from the buyer's profile; when known, only shops within
  `settings.catalogue_radius_km` (10 km) are listed, with their `distance`.
  Optional `categorie` filter.
- `GET /products/{product_id}`: one product with its shop.

## Seller side (role `vendeur`)
- `GET /products/mine`: the seller's own products, newest first.
- `POST /products`: create (`ownerId` = seller, `createdAt` = server time).
- `PUT /products/{product_id}`: partial edit, owner only.
- `DELETE /products/{product_id}`: owner only.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from profiti.config import get_db, settings
from profiti.core.errors import service_errors
from profiti.core.geo import GeoPoint, profile_point
from profiti.core.security import get_current_seller, get_current_user
from profiti.repositories import products
from profiti.schemas.product import ProductCreate, ProductOut, ProductUpdate
from profiti.services import catalogue

logger = logging.getLogger("profiti.products")

router = APIRouter(prefix="/products", tags=["Products"])


@router.get("", response_model=List[ProductOut])
def list_products(
    latitude: Optional[float] = Query(None, ge=-90, le=90),
    longitude: Optional[float] = Query(None, ge=-180, le=180),
    categorie: Optional[str] = Query(None, description="Nom de catégorie (optionnel)"),
    current_user: dict = Depends(get_current_user),
    db=Depends(get_db),
):
    if latitude is not None and longitude is not None:
        position = GeoPoint(latitude=latitude, longitude=longitude)
    else:
        position = profile_point(current_user)
    with service_errors("list products"):
        shops = products.shops_by_id(db)
        items = list(products.stream_products(db, categorie=categorie))
    return catalogue.catalogue(items, shops, position, settings.catalogue_radius_km)


@router.get("/mine", response_model=List[ProductOut])
def list_my_products(current_user: dict = Depends(get_current_seller), db=Depends(get_db)):
    with service_errors("list seller products"):
        items = products.stream_products(db, owner_id=current_user["id"])
        return catalogue.newest_first(products.with_shop(p, current_user) for p in items)


@router.get("/{product_id}", response_model=ProductOut)
def get_product(product_id: str, current_user: dict = Depends(get_current_user), db=Depends(get_db)):
    with service_errors("get product"):
        product = products.load_product(db, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Produit non trouvé.")
    return product


@router.post("", response_model=ProductOut, status_code=status.HTTP_201_CREATED)
def create_product(payload: ProductCreate, current_user: dict = Depends(get_current_seller), db=Depends(get_db)):
    with service_errors("create product"):
        return catalogue.create_product(db, current_user, payload)


@router.put("/{product_id}", response_model=ProductOut)
def update_product(
    product_id: str,
    payload: ProductUpdate,
    current_user: dict = Depends(get_current_seller),
    db=Depends(get_db),
):
    with service_errors("update product"):
        return catalogue.update_product(db, current_user, product_id, payload)


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_product(product_id: str, current_user: dict = Depends(get_current_seller), db=Depends(get_db)):
    with service_errors("delete product"):
        catalogue.delete_product(db, current_user, product_id)
