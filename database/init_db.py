import os
import sys

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
if BASE_DIR not in sys.path:
    sys.path.insert(0, BASE_DIR)

from tenderhub import create_app
from tenderhub.db import get_db, init_db


DEMO_TENANTS = [
    ("tenant-acme", "Acme Office Supply", "acme-office-supply"),
    ("tenant-kigali", "Kigali Furniture", "kigali-furniture"),
]
DEMO_USERS = [
    ("user-admin", "admin@tenderhub.local", "admin", ["super-admin"], []),
    ("user-buyer", "buyer@tenderhub.local", "buyer", ["client"], []),
    ("user-acme", "sales@acme.local", "acme-sales", ["tenant"], ["tenant-acme"]),
    ("user-kigali", "hello@kigali.local", "kigali-furniture", ["tenant"], ["tenant-kigali"]),
]
DEMO_CATEGORIES = [
    ("cat-furniture", "Office Furniture", "office-furniture"),
    ("cat-stationery", "Stationery", "stationery"),
]
DEMO_PRODUCTS = [
    ("Ergonomic chair", "cat-furniture", "tenant-kigali"),
    ("Standing desk", "cat-furniture", "tenant-acme"),
    ("A4 paper ream", "cat-stationery", "tenant-acme"),
]


def seed_demo(db) -> None:
    existing = db.execute("SELECT COUNT(*) AS total FROM users").fetchone()
    if existing and int(existing["total"]) > 0:
        return
    with db.transaction():
        for tenant_id, name, slug in DEMO_TENANTS:
            db.execute("INSERT INTO tenants (id, name, slug) VALUES (?, ?, ?)", (tenant_id, name, slug))
        for user_id, email, username, roles, tenants in DEMO_USERS:
            db.execute("INSERT INTO users (id, email, username) VALUES (?, ?, ?)", (user_id, email, username))
            for role in roles:
                db.execute("INSERT INTO user_roles (user_id, role) VALUES (?, ?)", (user_id, role))
            for position, tenant_id in enumerate(tenants):
                db.execute(
                    "INSERT INTO user_tenants (user_id, tenant_id, position) VALUES (?, ?, ?)",
                    (user_id, tenant_id, position),
                )
        for category_id, name, slug in DEMO_CATEGORIES:
            db.execute("INSERT INTO categories (id, name, slug) VALUES (?, ?, ?)", (category_id, name, slug))
        for name, category_id, tenant_id in DEMO_PRODUCTS:
            db.execute(
                "INSERT INTO products (name, category_id, tenant_id) VALUES (?, ?, ?)",
                (name, category_id, tenant_id),
            )


if __name__ == "__main__":
    app = create_app()
    with app.app_context():
        init_db()
        if os.environ.get("DEMO_SEED", "0").strip().lower() in {"1", "true", "yes"}:
            seed_demo(get_db())
    print("Database initialized.")
