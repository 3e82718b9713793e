"""
Seed the restaurant database with an admin account, default categories and a
small sample menu.

Seeding is idempotent:
- The admin user is created only if its username is free
- Categories are created only when the table is empty
- Sample menu items are created only when the menu is empty

Usage:
    python -m scripts.seed_data [--admin-username admin] [--admin-password ...] [--database-url ...]

Environment:
    APP_DATABASE_URL: Database connection (default: sqlite:///restaurant.db)
    SEED_ADMIN_USERNAME / SEED_ADMIN_PASSWORD: Admin credentials (default: admin / admin123)
"""

import argparse
import logging
import os
import sys
from decimal import Decimal
from typing import Dict, Any

from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker, Session

# Make restopos importable when run as a plain script from backend/
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from restopos.db import init_db
from restopos.db.models import Category, MenuItem, ROLE_ADMIN
from restopos.db.user_utils import create_user, find_user_by_username
from restopos.utils.money import to_cents

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = ["Appetizers", "Main Courses", "Desserts", "Beverages", "Specials"]

SAMPLE_MENU = [
    {"name": "Spring Rolls", "price": Decimal("5.99"), "category": "Appetizers", "stock": 50},
    {"name": "Samosas", "price": Decimal("4.99"), "category": "Appetizers", "stock": 40},
]


def seed_database(
    session: Session,
    admin_username: str = "admin",
    admin_password: str = "admin123"
) -> Dict[str, Any]:
    """
    Seed baseline data without touching anything that already exists.

    Args:
        session: SQLAlchemy session (committed on success)
        admin_username: Username of the bootstrap admin
        admin_password: Plain password for the bootstrap admin

    Returns:
        Dictionary with statistics: {
            'admin_created': bool,
            'categories_created': int,
            'menu_items_created': int
        }
    """
    stats = {
        'admin_created': False,
        'categories_created': 0,
        'menu_items_created': 0
    }

    if find_user_by_username(session, admin_username) is None:
        create_user(
            session,
            name="Admin User",
            username=admin_username,
            password=admin_password,
            role=ROLE_ADMIN
        )
        stats['admin_created'] = True
        logger.info("Admin user created (username: %s)", admin_username)

    if session.execute(select(func.count(Category.id))).scalar_one() == 0:
        for name in DEFAULT_CATEGORIES:
            session.add(Category(name=name))
        session.flush()
        stats['categories_created'] = len(DEFAULT_CATEGORIES)
        logger.info("%d default categories created", len(DEFAULT_CATEGORIES))

    if session.execute(select(func.count(MenuItem.id))).scalar_one() == 0:
        categories = {
            c.name: c.id for c in session.execute(select(Category)).scalars().all()
        }
        for item in SAMPLE_MENU:
            session.add(MenuItem(
                name=item['name'],
                price=to_cents(item['price']),
                category_id=categories.get(item['category']),
                stock=item['stock'],
                available=True
            ))
        session.flush()
        stats['menu_items_created'] = len(SAMPLE_MENU)
        logger.info("%d sample menu items created", len(SAMPLE_MENU))

    session.commit()
    return stats


def main(argv=None):
    """Command-line interface for database seeding."""
    parser = argparse.ArgumentParser(
        description="Seed admin user, categories and sample menu idempotently"
    )
    parser.add_argument(
        '--admin-username',
        default=os.getenv('SEED_ADMIN_USERNAME', 'admin'),
        help='Admin username (default: env SEED_ADMIN_USERNAME or admin)'
    )
    parser.add_argument(
        '--admin-password',
        default=os.getenv('SEED_ADMIN_PASSWORD', 'admin123'),
        help='Admin password (default: env SEED_ADMIN_PASSWORD or admin123)'
    )
    parser.add_argument(
        '--database-url',
        default=None,
        help='Database URL (default: env var APP_DATABASE_URL or sqlite:///restaurant.db)'
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    db_url = args.database_url or os.getenv('APP_DATABASE_URL', 'sqlite:///restaurant.db')
    logger.info("Using database: %s", db_url)

    engine = create_engine(db_url)
    init_db(engine, use_alembic=False)
    SessionLocal = sessionmaker(bind=engine)
    session = SessionLocal()

    try:
        stats = seed_database(session, args.admin_username, args.admin_password)

        print("\n" + "=" * 60)
        print("SEED RESULTS")
        print("=" * 60)
        print(f"Admin Created:      {stats['admin_created']}")
        print(f"Categories Created: {stats['categories_created']}")
        print(f"Menu Items Created: {stats['menu_items_created']}")
        print("=" * 60 + "\n")
        return 0
    except Exception as e:
        logger.error("Seeding failed: %s", e, exc_info=True)
        session.rollback()
        return 1
    finally:
        session.close()
        engine.dispose()


if __name__ == '__main__':
    sys.exit(main())
