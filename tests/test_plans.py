from storefront.utils.plans import plan_display_name, plan_tier, purchase_fact_from_session


def test_known_price_id():
    assert plan_display_name("price_1T3gqr0490AThCZFJxTNqvs6") == "Creator License"


def test_unknown_price_falls_back_to_metadata_then_starter():
    assert plan_display_name("price_unknown", "Founders") == "Founders"
    assert plan_display_name("price_unknown") == "Starter"
    assert plan_display_name(None) == "Starter"


def test_overrides_extend_catalogue():
    assert plan_display_name("price_new", overrides={"price_new": "VIP"}) == "VIP"


def test_plan_tier():
    assert plan_tier("Creator License (Activation)") == "creator"
    assert plan_tier("Agency") == "agency"
    assert plan_tier("Starter") is None


def test_session_defaults():
    fact = purchase_fact_from_session({"customer_email": "solo@x.com"})

    assert fact.customer_email == "solo@x.com"
    assert fact.customer_name == "Friend"
    assert fact.amount == "0.00"
    assert fact.currency == "USD"
    assert fact.plan_display_name == "Starter"


def test_customer_details_win_over_customer_email():
    fact = purchase_fact_from_session({
        "customer_email": "old@x.com",
        "customer_details": {"email": "new@x.com", "name": "Grace Hopper"},
        "amount_total": 1999,
        "currency": "eur",
        "metadata": {"plan": "Custom"},
    })

    assert fact.customer_email == "new@x.com"
    assert fact.first_name == "Grace"
    assert fact.amount == "19.99"
    assert fact.currency == "EUR"
    assert fact.plan_display_name == "Custom"
