# fintrack/seed.py
"""Create the schema, default categories and demo data.

    fintrack-seed                    # tables, categories, demo users
    fintrack-seed --transactions 50  # plus 50 random transactions per user
"""

import argparse
import logging
import random
from datetime import date, timedelta

from . import crud
from .config import get_settings
from .database import init_db, make_engine, make_session_factory
from .models import Category, EntryType, Role, Transaction

logger = logging.getLogger(__name__)

DEMO_PASSWORD = "password123"
DEMO_USERS = [
    ("admin@example.com", "Admin User", Role.ADMIN),
    ("user@example.com", "Regular User", Role.USER),
    ("readonly@example.com", "Read Only User", Role.READ_ONLY),
]

INCOME_DESCRIPTIONS = ["Monthly salary", "Freelance project", "Investment return", "Bonus payment", "Side hustle"]
EXPENSE_DESCRIPTIONS = [
    "Grocery shopping", "Gas station", "Restaurant", "Online purchase",
    "Utility bill", "Coffee shop", "Movie tickets",
]


def seed_users(db):
    users = []
    for email, name, role in DEMO_USERS:
        user = crud.get_user_by_email(db, email)
        if user is None:
            user = crud.create_user(db, name, email, DEMO_PASSWORD, role)
            logger.info("Created demo user %s (%s)", email, role.value)
        users.append(user)
    return users


def seed_transactions(db, users, per_user: int, days: int = 180, rng=None):
    rng = rng or random.Random()
    globals_ = db.query(Category).filter(Category.user_id.is_(None)).all()
    income_cats = [c for c in globals_ if c.type is EntryType.INCOME]
    expense_cats = [c for c in globals_ if c.type is EntryType.EXPENSE]
    today = date.today()

    for user in users:
        for _ in range(per_user):
            # roughly 30% income, 70% expense
            is_income = rng.random() > 0.7
            cats = income_cats if is_income else expense_cats
            if is_income:
                amount = round(rng.uniform(1000, 5000), 2)
            else:
                amount = round(rng.uniform(10, 510), 2)
            db.add(Transaction(
                user_id=user.id,
                category_id=rng.choice(cats).id if cats else None,
                amount=amount,
                type=EntryType.INCOME if is_income else EntryType.EXPENSE,
                description=rng.choice(INCOME_DESCRIPTIONS if is_income else EXPENSE_DESCRIPTIONS),
                date=today - timedelta(days=rng.randrange(days)),
            ))
        logger.info("Added %d transactions for %s", per_user, user.email)
    db.commit()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Initialise the finance tracker database")
    parser.add_argument("--transactions", type=int, default=0, help="random transactions per demo user")
    parser.add_argument("--days", type=int, default=180, help="spread transactions over this many days")
    parser.add_argument("--no-users", action="store_true", help="skip the demo accounts")
    args = parser.parse_args(argv)

    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper(), format="%(levelname)s %(message)s")

    engine = make_engine(settings.database_url)
    session_factory = make_session_factory(engine)
    init_db(engine, session_factory)

    db = session_factory()
    try:
        if not args.no_users:
            users = seed_users(db)
            if args.transactions > 0:
                seed_transactions(db, users, args.transactions, args.days)
            logger.info("Demo accounts use password %r", DEMO_PASSWORD)
    finally:
        db.close()
        engine.dispose()


if __name__ == "__main__":
    main()
