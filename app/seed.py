import logging
import uuid
from decimal import Decimal

from sqlalchemy.orm import Session
from sqlalchemy import text
from sqlalchemy.exc import ProgrammingError, OperationalError

from app.core.security import hash_password
from app.models.user import User
from app.models.service import Service

logger = logging.getLogger(__name__)

SERVICES = [
    ("Wedding Stage Decoration", "wedding", Decimal("45000.00"), "per event"),
    ("Birthday Party Setup", "birthday", Decimal("8500.00"), "per event"),
    ("Living Room Makeover", "home", Decimal("120.00"), "per sqft"),
    ("Corporate Event Styling", "office", Decimal("30000.00"), "per event"),
    ("Holud Night Decor", "wedding", Decimal("25000.00"), "per event"),
]


def ensure_user(db: Session, email: str, password: str, role: str, name: str, specialty: str = ""):
    u = db.query(User).filter(User.email == email).first()
    if u:
        return u
    u = User(
        id=str(uuid.uuid4()),
        email=email,
        display_name=name,
        role=role,
        specialty=specialty,
        is_approved=role == "decorator",
        password_hash=hash_password(password),
        is_active=True,
    )
    db.add(u)
    db.commit()
    return u


def ensure_service(db: Session, name: str, category: str, price: Decimal, unit: str):
    if db.query(Service).filter(Service.name == name).first():
        return
    db.add(Service(
        id=str(uuid.uuid4()),
        name=name,
        category=category,
        description=f"{name} by our approved decorators.",
        price=price,
        unit=unit,
        is_active=True,
        booking_count=0,
        created_by="seed",
    ))
    db.commit()


def run(db: Session):
    # If migrations haven't been applied yet, seeding must not crash the API.
    try:
        db.execute(text("SELECT 1 FROM users LIMIT 1"))
    except (ProgrammingError, OperationalError):
        db.rollback()
        logger.warning("[seed] users table not found yet. Skipping seeding (run alembic upgrade head).")
        return

    ensure_user(db, "admin@lumora.local", "admin12345", "admin", "Admin")
    ensure_user(db, "decorator@lumora.local", "decorator12345", "decorator", "Nadia Rahman", "Wedding & stage")
    ensure_user(db, "user@lumora.local", "user12345", "user", "Demo User")

    for name, category, price, unit in SERVICES:
        ensure_service(db, name, category, price, unit)
    logger.info("[seed] done")
