"""
Database initialization script.

Creates all tables defined in the SQLAlchemy models.
Run this script to initialize a fresh database or add new tables.

Usage:
    python -m shopsync.database.init_db [--seed-demo]

Environment variables:
    DATABASE_URL: Database connection string
    ENCRYPTION_KEY: Required with --seed-demo
"""

import sys
import logging
from datetime import datetime, timezone
from decimal import Decimal

from dotenv import load_dotenv
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from shopsync.db_base import Base
from shopsync import models  # noqa: F401 - registers tables on Base.metadata
from shopsync.config.settings import load_settings
from shopsync.database.session import create_db_engine, create_session_factory
from shopsync.models.tenant import DEMO_ACCESS_TOKEN
from shopsync.platform.secrets import CredentialCipher
from shopsync.repositories.customers import CustomersRepository
from shopsync.repositories.orders import OrdersRepository
from shopsync.repositories.products import ProductsRepository
from shopsync.repositories.tenants import TenantsRepository

logger = logging.getLogger(__name__)

DEMO_SHOP_DOMAIN = "demo-store.myshopify.com"


def init_database(engine: Engine) -> None:
    """
    Initialize database tables.

    Creates all tables if they don't exist. Existing tables are not modified.
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("Database connection successful")
    except SQLAlchemyError as e:
        logger.error(f"Failed to connect to database: {e}")
        raise

    table_names = sorted(Base.metadata.tables.keys())
    logger.info(f"Tables to create/verify: {', '.join(table_names)}")

    try:
        Base.metadata.create_all(bind=engine)
        logger.info("All tables created/verified successfully")
    except SQLAlchemyError as e:
        logger.error(f"Failed to create tables: {e}")
        raise


def seed_demo_tenant(session_factory: sessionmaker, cipher: CredentialCipher) -> bool:
    """
    Create the demo tenant with a small data set, unless it already exists.

    The demo tenant carries a placeholder token and is never synced.

    Returns:
        True if the tenant was created
    """
    session = session_factory()
    try:
        tenants = TenantsRepository(session)
        if tenants.get_by_shop_domain(DEMO_SHOP_DOMAIN):
            logger.info("Demo tenant already exists, skipping")
            return False

        tenant = tenants.create(
            shop_domain=DEMO_SHOP_DOMAIN,
            access_token_encrypted=cipher.encrypt(DEMO_ACCESS_TOKEN),
            name="Demo Shopify Store",
        )

        customers = CustomersRepository(session, tenant.id)
        john, _ = customers.upsert_by_shopify_id("1001", {
            "email": "john.doe@example.com",
            "first_name": "John",
            "last_name": "Doe",
            "total_spent": Decimal("1250.50"),
            "orders_count": 5,
        })
        customers.upsert_by_shopify_id("1002", {
            "email": "jane.smith@example.com",
            "first_name": "Jane",
            "last_name": "Smith",
            "total_spent": Decimal("890.25"),
            "orders_count": 3,
        })

        products = ProductsRepository(session, tenant.id)
        tee, _ = products.upsert_by_shopify_id("2001", {
            "title": "Classic T-Shirt",
            "handle": "classic-t-shirt",
            "vendor": "Demo Apparel",
            "status": "active",
        })

        orders = OrdersRepository(session, tenant.id)
        orders.upsert_with_line_items(
            "3001",
            {
                "order_number": "1001",
                "customer_id": john.id,
                "customer_shopify_id": "1001",
                "email": john.email,
                "financial_status": "paid",
                "total_price": Decimal("59.98"),
                "subtotal_price": Decimal("59.98"),
                "order_date": datetime(2024, 12, 1, 10, 30, tzinfo=timezone.utc),
            },
            [{
                "shopify_id": "4001",
                "title": "Classic T-Shirt",
                "quantity": 2,
                "price": Decimal("29.99"),
                "product_id": tee.id,
                "product_shopify_id": "2001",
            }],
        )

        tee.total_sales = orders.sum_line_item_prices(tee.id)
        products.commit()

        logger.info("Created demo tenant", extra={"tenant_id": tenant.id})
        return True
    finally:
        session.close()


def main():
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Initialize database tables")
    parser.add_argument(
        "--seed-demo",
        action="store_true",
        help="Create the demo tenant with sample data"
    )
    parser.add_argument(
        "--database-url",
        type=str,
        help="Database URL (overrides DATABASE_URL env var)"
    )
    args = parser.parse_args()

    load_dotenv()
    logging.basicConfig(level=logging.INFO)

    settings = load_settings()
    try:
        engine = create_db_engine(args.database_url or settings.database_url)
        init_database(engine)
        if args.seed_demo:
            seed_demo_tenant(
                create_session_factory(engine),
                CredentialCipher(settings.encryption_key),
            )
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
