"""Load the shared default categories and a demo user.

Run with ``python -m seed`` after ``alembic upgrade head``. Safe to run more
than once: rows that already exist are left untouched.
"""

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from config import get_settings
from database import session_scope
from hierarchy import CategoryForest, name_key
from models import Account, AccountType, Category, CategoryType, User
from services import DEFAULT_ACCOUNT_NAME, hash_password

logger = logging.getLogger(__name__)

DEMO_EMAIL = "test@fianzas.com"
DEMO_NAME = "Usuario de Prueba"
DEMO_PASSWORD = "test123"

# (name, color, children)
INCOME_CATEGORIES = [
    (
        "Sueldo",
        "#10b981",
        [
            ("Salario Base", "#059669"),
            ("Aguinaldo", "#34d399"),
            ("Prima Vacacional", "#6ee7b7"),
        ],
    ),
    (
        "Trabajo Extra",
        "#60a5fa",
        [
            ("Bonos y Comisiones", "#3b82f6"),
            ("Freelance", "#93c5fd"),
        ],
    ),
    ("Negocio Propio", "#8b5cf6", [("Ventas", "#06b6d4")]),
    (
        "Inversiones",
        "#a78bfa",
        [
            ("Dividendos", "#c4b5fd"),
            ("Alquileres", "#f59e0b"),
        ],
    ),
    (
        "Pensión",
        "#fbbf24",
        [("Jubilación", "#fcd34d")],
    ),
    ("Apoyo Familiar", "#ef4444", []),
    ("Prestamos Recibidos", "#f87171", []),
    ("Reembolsos", "#67e8f9", []),
    ("Otros Ingresos", "#84cc16", []),
]

EXPENSE_CATEGORIES = [
    (
        "Vivienda",
        "#ef4444",
        [
            ("Renta/Hipoteca", "#dc2626"),
            ("Predial", "#f87171"),
            ("Mantenimiento Hogar", "#fca5a5"),
        ],
    ),
    (
        "Alimentación",
        "#f97316",
        [
            ("Supermercado", "#fb923c"),
            ("Restaurantes", "#fdba74"),
        ],
    ),
    (
        "Transporte",
        "#eab308",
        [
            ("Gasolina", "#facc15"),
            ("Transporte Público", "#fde047"),
            ("Uber/Taxi", "#fef08a"),
        ],
    ),
    (
        "Servicios",
        "#22c55e",
        [
            ("Luz", "#4ade80"),
            ("Agua", "#86efac"),
            ("Gas", "#bbf7d0"),
            ("Internet", "#06b6d4"),
            ("Teléfono", "#22d3ee"),
            ("Cable/Streaming", "#67e8f9"),
        ],
    ),
    (
        "Salud",
        "#3b82f6",
        [
            ("Médicos", "#60a5fa"),
            ("Medicinas", "#93c5fd"),
            ("Dentista", "#dbeafe"),
        ],
    ),
    (
        "Educación",
        "#8b5cf6",
        [
            ("Colegiaturas", "#a78bfa"),
            ("Libros", "#c4b5fd"),
            ("Cursos", "#e9d5ff"),
        ],
    ),
    (
        "Entretenimiento",
        "#ec4899",
        [
            ("Cine", "#f472b6"),
            ("Conciertos", "#f9a8d4"),
            ("Deportes", "#fbcfe8"),
        ],
    ),
    (
        "Deudas",
        "#dc2626",
        [
            ("Tarjetas de Crédito", "#b91c1c"),
            ("Préstamos", "#991b1b"),
        ],
    ),
    (
        "Seguros",
        "#6b7280",
        [
            ("Seguro Auto", "#9ca3af"),
            ("Seguro Vida", "#d1d5db"),
            ("Seguro Gastos Médicos", "#e5e7eb"),
        ],
    ),
    (
        "Cuidado Personal",
        "#fbbf24",
        [
            ("Ropa y Calzado", "#f59e0b"),
            ("Peluquería", "#fcd34d"),
        ],
    ),
    ("Regalos", "#84cc16", [("Donaciones", "#a3e635")]),
    ("Impuestos", "#7c3aed", [("Multas", "#a855f7")]),
    ("Otros Gastos", "#64748b", []),
]


def _ensure_category(
    session: Session,
    forest: CategoryForest,
    name: str,
    category_type: CategoryType,
    color: str,
    parent: Optional[Category] = None,
) -> tuple[Category, bool]:
    existing = forest.find_by_name(name, category_type)
    if existing is not None:
        return existing, False
    parent_id = parent.id if parent is not None else None
    depth = forest.validate_create(name, category_type, parent_id)
    category = Category(
        user_id=None,
        name=name,
        name_lower=name_key(name),
        type=category_type,
        color=color,
        parent_id=parent_id,
        depth=depth,
    )
    session.add(category)
    session.flush()
    return category, True


def seed_global_categories(session: Session) -> int:
    """Create the shared category tree; return how many rows were added."""
    created = 0
    for category_type, tree in (
        (CategoryType.income, INCOME_CATEGORIES),
        (CategoryType.expense, EXPENSE_CATEGORIES),
    ):
        for name, color, children in tree:
            forest = CategoryForest(
                session.scalars(select(Category).where(Category.user_id.is_(None))).all()
            )
            root, added = _ensure_category(session, forest, name, category_type, color)
            created += added
            for child_name, child_color in children:
                forest = CategoryForest(
                    session.scalars(
                        select(Category).where(Category.user_id.is_(None))
                    ).all()
                )
                _, added = _ensure_category(
                    session, forest, child_name, category_type, child_color, root
                )
                created += added
    return created


def seed_demo_user(session: Session) -> User:
    user = session.scalar(select(User).where(User.email == DEMO_EMAIL))
    if user is None:
        user = User(
            email=DEMO_EMAIL,
            name=DEMO_NAME,
            password_hash=hash_password(DEMO_PASSWORD),
        )
        session.add(user)
        session.flush()
        logger.info(f"seed: demo user created email={DEMO_EMAIL}")

    has_account = session.scalar(
        select(Account.id).where(
            Account.user_id == user.id, Account.name == DEFAULT_ACCOUNT_NAME
        )
    )
    if not has_account:
        session.add(
            Account(
                user_id=user.id,
                name=DEFAULT_ACCOUNT_NAME,
                type=AccountType.checking,
                balance=Decimal("0"),
                currency=get_settings().default_currency,
            )
        )
        session.flush()
    return user


def run(session: Session) -> dict[str, object]:
    created = seed_global_categories(session)
    user = seed_demo_user(session)
    logger.info(f"seed: categories_created={created} demo_user_id={user.id}")
    return {"categories_created": created, "demo_user_id": user.id}


def main() -> None:
    logging.basicConfig(level=get_settings().log_level)
    with session_scope() as session:
        run(session)


if __name__ == "__main__":
    main()
