# profiti/services/cart_summary.py
"""
Read-only views over cart lines (the `panier` items the mobile app stores).

A cart line is a product snapshot plus the purchase quantity:
    {"id", "nom", "ownerId", "boutique", "prixPromotionnel", "prixNormal",
     "quantite" (stock), "quantiteAchat" (purchased), "boutiqueLatitude", "boutiqueLongitude"}
Nothing in this module mutates the lines it receives.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel

CENT = Decimal("0.01")


class ShopDetail(BaseModel):
    id: Optional[str] = None
    nom: str
    prixProduits: float
    prixLivraison: float
    prixTotalVendeur: float


def _money(value: Any) -> Decimal:
    try:
        return Decimal(str(value or 0))
    except ArithmeticError:
        return Decimal("0")


def purchase_quantity(item: Mapping[str, Any]) -> int:
    try:
        qty = int(item.get("quantiteAchat") or 1)
    except (TypeError, ValueError):
        qty = 1
    return max(1, qty)


def unit_price(item: Mapping[str, Any]) -> Decimal:
    # Promotional price first; zero or missing falls back to the normal price.
    for key in ("prixPromotionnel", "prixNormal", "prix"):
        price = _money(item.get(key))
        if price:
            return price
    return Decimal("0")


def line_total(item: Mapping[str, Any]) -> Decimal:
    return unit_price(item) * purchase_quantity(item)


def group_by_shop(items: Iterable[Mapping[str, Any]]) -> Dict[Optional[str], List[Mapping[str, Any]]]:
    """Group lines by owning shop (ownerId), keeping first-seen shop order."""
    groups: Dict[Optional[str], List[Mapping[str, Any]]] = {}
    for item in items or []:
        groups.setdefault(item.get("ownerId"), []).append(item)
    return groups


def shop_ids(items: Iterable[Mapping[str, Any]]) -> List[Optional[str]]:
    return list(group_by_shop(items).keys())


def products_total(items: Iterable[Mapping[str, Any]]) -> float:
    total = sum((line_total(it) for it in items or []), Decimal("0"))
    return float(total.quantize(CENT))


def delivery_total(items: Iterable[Mapping[str, Any]], fees: Mapping[str, float]) -> float:
    """Sum of per-shop delivery fees over the distinct shops of the cart."""
    total = sum((_money(fees.get(sid)) for sid in shop_ids(items) if sid is not None), Decimal("0"))
    return float(total.quantize(CENT))


def shop_details(items: Iterable[Mapping[str, Any]], fees: Optional[Mapping[str, float]] = None) -> List[ShopDetail]:
    fees = fees or {}
    details: List[ShopDetail] = []
    for sid, lines in group_by_shop(items).items():
        products = sum((line_total(it) for it in lines), Decimal("0"))
        delivery = _money(fees.get(sid)) if sid is not None else Decimal("0")
        details.append(ShopDetail(
            id=sid,
            nom=lines[0].get("boutique") or "Boutique",
            prixProduits=float(products.quantize(CENT)),
            prixLivraison=float(delivery.quantize(CENT)),
            prixTotalVendeur=float((products + delivery).quantize(CENT)),
        ))
    return details


def grand_total(
    items: Iterable[Mapping[str, Any]],
    fees: Optional[Mapping[str, float]] = None,
    delivery: bool = False,
) -> float:
    """Products total, plus delivery fees only when the buyer chose delivery."""
    items = list(items or [])
    total = _money(products_total(items))
    if delivery:
        total += _money(delivery_total(items, fees or {}))
    return float(total.quantize(CENT))


def find_over_stock(items: Iterable[Mapping[str, Any]]) -> Optional[Mapping[str, Any]]:
    """First line whose purchase quantity exceeds the available stock."""
    for item in items or []:
        available = item.get("quantite")
        if available is None:
            continue
        try:
            if purchase_quantity(item) > int(available):
                return item
        except (TypeError, ValueError):
            continue
    return None


def clamp_quantity(requested: int, available: Optional[int]) -> int:
    """Quantity edit rule: keep within [1, available stock]."""
    maximum = int(available or 1)
    return max(1, min(int(requested or 1), maximum))
