from typing import Any, Dict, List

from profiti.config import PANIER


def load_items(db, uid: str) -> List[Dict[str, Any]]:
    snap = db.collection(PANIER).document(uid).get()
    if not snap.exists:
        return []
    return list((snap.to_dict() or {}).get("items") or [])


def save_items(db, uid: str, items: List[Dict[str, Any]]) -> None:
    db.collection(PANIER).document(uid).set({"items": items}, merge=True)


def clear(db, uid: str) -> None:
    db.collection(PANIER).document(uid).set({"items": []})
