"""Seed script for demo products and orders."""

import uuid
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from shipquote.db.database import get_db_session
from shipquote.db.models import Order, Product
from shipquote.db.repository import OrderRepository, ProductRepository
from shipquote.db.migrations import run_migrations


DEMO_PRODUCTS = [
    {
        "id": "prod-intake-kit",
        "title": "Cold Air Intake Kit",
        "sku": "FAS-CAI-01",
        "shipping_config": {
            "weight": 12,
            "dimensions": {"length": 30, "width": 12, "height": 10},
            "shippingClass": "standard",
            "requiresShipping": True,
        },
    },
    {
        "id": "prod-pulley",
        "title": "Supercharger Pulley",
        "sku": "FAS-PUL-3",
        "shipping_weight": 2.5,
        "box_dimensions": "8 x 8 x 4",
    },
    {
        "id": "prod-injectors",
        "title": "Fuel Injector Set",
        "sku": "FAS-INJ-8",
        "shipping_weight": 4,
        "box_dimensions": "14x10x6",
        "ships_alone": True,
    },
    {
        "id": "prod-engine-block",
        "title": "Long Block Engine",
        "sku": "FAS-LB-62",
        "shipping_weight": 420,
        "box_dimensions": "48x40x36",
        "shipping_class": "Freight",
    },
    {
        "id": "prod-dyno-tune",
        "title": "Dyno Tune Session",
        "sku": "FAS-TUNE",
        "product_type": "service",
    },
    {
        "id": "prod-install",
        "title": "Intake Installation",
        "sku": "FAS-INSTALL-CAI",
        "shipping_class": "Install Only",
    },
]


DEMO_ORDERS = [
    {
        "order_number": "FAS-100001",
        "customer_name": "Alice Johnson",
        "customer_email": "alice@example.com",
        "shipping_address": {
            "addressLine1": "456 Oak Avenue",
            "city": "Los Angeles",
            "state": "CA",
            "postalCode": "90001",
            "country": "US",
        },
        "cart": [
            {"sku": "FAS-CAI-01", "quantity": 1},
            {"sku": "FAS-PUL-3", "quantity": 2},
        ],
        "days_ago": 2,
    },
    {
        "order_number": "FAS-100002",
        "customer_name": "Bob Smith",
        "customer_email": "bob@example.com",
        "shipping_address": {
            "address_line1": "789 Elm Street",
            "city_locality": "Austin",
            "state_province": "TX",
            "postal_code": "78701",
        },
        "cart": [{"sku": "FAS-INJ-8", "quantity": 2}],
        "package_weight_lbs": 8,
        "package_dimensions": {"length": 14, "width": 10, "height": 6},
        "days_ago": 1,
    },
    {
        "order_number": "FAS-100003",
        "customer_name": "Carol Williams",
        "shipping_address": {
            "street1": "321 Pine Road",
            "city": "Seattle",
            "state": "WA",
            "zip": "98101",
        },
        "cart": [{"sku": "FAS-LB-62", "quantity": 1}],
        "days_ago": 0,
    },
]


def seed_demo_products(db: Session) -> list[Product]:
    product_repo = ProductRepository(db)
    created = []
    for data in DEMO_PRODUCTS:
        existing = product_repo.get_by_id(data["id"])
        if existing:
            continue
        created.append(product_repo.create(data))
    return created


def seed_demo_orders(db: Session) -> list[Order]:
    """Create demo orders awaiting labels."""
    order_repo = OrderRepository(db)
    created = []
    now = datetime.utcnow()

    for order_data in DEMO_ORDERS:
        if order_repo.get_by_number(order_data["order_number"]):
            continue
        data = {k: v for k, v in order_data.items() if k != "days_ago"}
        created_at = now - timedelta(days=order_data["days_ago"])
        created.append(order_repo.create({
            "id": uuid.uuid4(),
            "status": "paid",
            "created_at": created_at,
            "updated_at": created_at,
            **data,
        }))
    return created


def has_demo_data(db: Session) -> bool:
    return db.query(Product).filter(Product.id == DEMO_PRODUCTS[0]["id"]).first() is not None


def seed_demo_data(db: Session) -> dict[str, int]:
    """Seed all demo data. Returns counts of created rows."""
    products = seed_demo_products(db)
    orders = seed_demo_orders(db)
    return {"products": len(products), "orders": len(orders)}


def main() -> None:
    run_migrations()
    with get_db_session() as db:
        counts = seed_demo_data(db)
    print(f"Seeded {counts['products']} products and {counts['orders']} orders")


if __name__ == "__main__":
    main()
