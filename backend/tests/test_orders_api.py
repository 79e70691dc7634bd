import pytest
from conftest import BUYER, COURIER, OTHER_COURIER, SELLER_A, SELLER_B, cart_line

DELIVERY_POINT = {"latitude": 36.82, "longitude": 10.20}

CONTACT = {"nom": "Ben Ali", "prenom": "Sami", "telephone": "20123456"}

DELIVERY_FORM = {
    **CONTACT,
    "choix": "livraison",
    "paiement": "cash",
    "adresse": "Rue de Marseille, Tunis",
    "localisation": DELIVERY_POINT,
}


@pytest.fixture
def buyer_cart(seeded_db):
    seeded_db.seed("panier/buyer-1", {"items": [
        cart_line("p1", seeded_db.data("produits/p1"), qty=2, seller=SELLER_A),
        cart_line("p3", seeded_db.data("produits/p3"), seller=SELLER_B),
    ]})
    return seeded_db


@pytest.mark.parametrize("form,message", [
    ({}, "Veuillez choisir un mode de réception."),
    ({"choix": "livraison"}, "Veuillez choisir la méthode de paiement."),
    ({"choix": "livraison", "paiement": "cash", **CONTACT}, "Veuillez sélectionner votre adresse sur la carte."),
    ({**DELIVERY_FORM, "telephone": " "}, "Veuillez remplir vos informations."),
    ({"choix": "sur_place", "paiement": "cash", "nom": "Ben Ali"}, "Veuillez remplir tous les champs pour sur place."),
    ({"choix": "sur_place", "paiement": "d17", **CONTACT}, "Veuillez remplir toutes les informations de la carte."),
])
def test_checkout_form_validation(as_user, buyer_cart, form, message):
    resp = as_user(BUYER).post("/orders", json=form)
    assert resp.status_code == 400
    assert resp.json()["detail"] == message


def test_empty_cart_is_rejected(as_user, seeded_db):
    resp = as_user(BUYER).post("/orders", json=DELIVERY_FORM)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Votre panier est vide."


def test_over_stock_line_is_rejected(as_user, seeded_db):
    seeded_db.seed("panier/buyer-1", {"items": [cart_line("p2", seeded_db.data("produits/p2"), qty=4)]})
    resp = as_user(BUYER).post("/orders", json=DELIVERY_FORM)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Vous avez dépassé la quantité disponible pour Baguette (max 3)."


def test_delivery_order_is_priced_per_shop(as_user, buyer_cart):
    resp = as_user(BUYER).post("/orders", json=DELIVERY_FORM)
    assert resp.status_code == 201
    order = resp.json()

    # shop-a is ~2.85 km away (base fee); shop-b offers free delivery
    assert order["prixLivraisons"] == {"shop-a": 3.0, "shop-b": 0.0}
    assert order["prixTotal"] == 9.0
    assert order["totalAPayer"] == 12.0
    assert order["statut"] == "en_attente"
    assert order["boutiques"] == ["shop-a", "shop-b"]
    assert order["idVendeur"] == "shop-a"
    details = {d["id"]: d for d in order["detailsBoutiques"]}
    assert details["shop-a"]["prixTotalVendeur"] == 8.0
    assert details["shop-b"]["prixTotalVendeur"] == 4.0

    stored = buyer_cart.data(f"commandes/{order['id']}")
    assert stored["localisation"] == DELIVERY_POINT
    assert stored["livreursRefuses"] == []


def test_order_decrements_stock_and_clears_cart(as_user, buyer_cart):
    resp = as_user(BUYER).post("/orders", json=DELIVERY_FORM)
    assert resp.status_code == 201

    assert buyer_cart.data("produits/p1")["quantite"] == 8
    assert buyer_cart.data("produits/p3")["quantite"] == 4
    assert buyer_cart.data("panier/buyer-1") == {"items": []}


def test_delivery_order_notifies_couriers(as_user, buyer_cart):
    as_user(BUYER).post("/orders", json=DELIVERY_FORM)
    for courier in (COURIER, OTHER_COURIER):
        assert buyer_cart.messages(courier["id"]) == [
            "Une livraison est disponible pour la commande à Rue de Marseille, Tunis."
        ]


def test_pickup_order_has_no_delivery_fees(as_user, buyer_cart):
    form = {**CONTACT, "choix": "sur_place", "paiement": "cash", "adresse": "ignored"}
    order = as_user(BUYER).post("/orders", json=form).json()
    assert order["prixLivraisons"] == {}
    assert order["totalAPayer"] == order["prixTotal"] == 9.0
    assert order["adresse"] == ""
    assert buyer_cart.messages(COURIER["id"]) == []


def test_shop_outside_delivery_zone_is_rejected(as_user, buyer_cart):
    form = {**DELIVERY_FORM, "localisation": {"latitude": 36.40, "longitude": 10.60}}
    resp = as_user(BUYER).post("/orders", json=form)
    assert resp.status_code == 400
    assert "n'est pas disponible pour la livraison" in resp.json()["detail"]
    assert buyer_cart.data("produits/p1")["quantite"] == 10


def test_card_is_stored_masked(as_user, buyer_cart):
    form = {
        **CONTACT,
        "choix": "sur_place",
        "paiement": "d17",
        "carte": {"cardNumber": "4111 1111 1111 1234", "expiry": "12/27", "cvv": "123"},
    }
    order = as_user(BUYER).post("/orders", json=form).json()
    stored = buyer_cart.data(f"commandes/{order['id']}")
    assert stored["carte"] == {"last4": "1234", "expiry": "12/27"}


def test_stock_change_during_checkout_is_retried(as_user, buyer_cart):
    product = buyer_cart.collection("produits").document("p1")
    buyer_cart.interleave(lambda: product.update({"quantite": 9}))

    resp = as_user(BUYER).post("/orders", json=DELIVERY_FORM)
    assert resp.status_code == 201
    assert buyer_cart.data("produits/p1")["quantite"] == 7


def test_stock_keeps_changing_gives_conflict(as_user, buyer_cart):
    product = buyer_cart.collection("produits").document("p1")
    for _ in range(3):
        buyer_cart.interleave(lambda: product.update({"quantite": 9}))

    resp = as_user(BUYER).post("/orders", json=DELIVERY_FORM)
    assert resp.status_code == 409
    assert resp.json()["detail"] == "Le stock a changé pendant la commande. Veuillez réessayer."
    assert list(buyer_cart.collection("commandes").stream()) == []
    assert len(buyer_cart.data("panier/buyer-1")["items"]) == 2


def test_quote_delivery_and_pickup(as_user, buyer_cart):
    client = as_user(BUYER)
    quote = client.post("/orders/quote", json={"choix": "livraison", "localisation": DELIVERY_POINT}).json()
    assert quote["prixLivraisons"] == {"shop-a": 3.0, "shop-b": 0.0}
    assert quote["prixLivraisonTotal"] == 3.0
    assert quote["totalAPayer"] == 12.0

    pickup = client.post("/orders/quote", json={"choix": "sur_place"}).json()
    assert pickup["prixLivraisonTotal"] == 0
    assert pickup["totalAPayer"] == 9.0

    assert client.post("/orders/quote", json={"choix": "livraison"}).status_code == 422
    # nothing was written
    assert buyer_cart.data("produits/p1")["quantite"] == 10


def test_order_visibility(as_user, buyer_cart):
    oid = as_user(BUYER).post("/orders", json=DELIVERY_FORM).json()["id"]

    assert as_user(BUYER).get(f"/orders/{oid}").status_code == 200
    assert as_user(SELLER_B).get(f"/orders/{oid}").status_code == 200
    resp = as_user(COURIER).get(f"/orders/{oid}")
    assert resp.status_code == 403
    assert resp.json()["detail"] == "Accès refusé."

    as_user(COURIER).post(f"/deliveries/{oid}/accept")
    assert as_user(COURIER).get(f"/orders/{oid}").status_code == 200

    resp = as_user(BUYER).get("/orders/missing")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Commande introuvable !"


def test_my_orders_split_active_and_past(as_user, seeded_db):
    seeded_db.seed("commandes/old", {"uid": "buyer-1", "statut": "livree", "date": "2026-09-01T10:00:00+00:00"})
    seeded_db.seed("commandes/new", {"uid": "buyer-1", "statut": "en_attente", "date": "2026-10-02T10:00:00+00:00"})
    seeded_db.seed("commandes/other", {"uid": "someone", "statut": "en_attente"})

    body = as_user(BUYER).get("/orders/my").json()
    assert [o["id"] for o in body["active"]] == ["new"]
    assert [o["id"] for o in body["past"]] == ["old"]


def test_seller_orders(as_user, buyer_cart):
    oid = as_user(BUYER).post("/orders", json=DELIVERY_FORM).json()["id"]

    assert [o["id"] for o in as_user(SELLER_A).get("/orders/seller").json()] == [oid]
    assert [o["id"] for o in as_user(SELLER_B).get("/orders/seller").json()] == [oid]
    assert as_user(BUYER).get("/orders/seller").status_code == 403


def test_cart_built_through_the_api_is_offered_to_couriers(as_user, seeded_db):
    client = as_user(BUYER)
    client.post("/cart/items", json={"product_id": "p1"})
    client.post("/cart/items", json={"product_id": "p3"})
    oid = client.post("/orders", json=DELIVERY_FORM).json()["id"]

    legs = as_user(COURIER).get("/deliveries/available", params={"latitude": 36.80, "longitude": 10.18}).json()
    assert [(leg["commandeId"], leg["boutiqueId"]) for leg in legs] == [(oid, "shop-a")]
    assert legs[0]["distance"] == 0.0
