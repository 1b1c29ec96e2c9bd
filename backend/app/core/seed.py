"""Seed a demo company with users and approval rules for local development.

Idempotent: users are matched by email and rules by name.
Run: python -m app.core.seed
"""
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db.session import get_session_factory, transaction
from app.models.approval_rule import ApprovalRule
from app.models.company import Company
from app.models.user import User
from app.schemas.approval_rule import ApprovalRuleIn
from app.services import rule_repository

logger = logging.getLogger(__name__)

DEMO_COMPANY = "Demo Corp"

# (email, name, role, manager email)
DEMO_USERS = [
    ("admin@demo.example.com", "Avery Admin", "admin", None),
    ("cfo@demo.example.com", "Casey CFO", "manager", None),
    ("manager@demo.example.com", "Morgan Manager", "manager", None),
    ("lead@demo.example.com", "Logan Lead", "manager", None),
    ("employee@demo.example.com", "Emery Employee", "employee", "manager@demo.example.com"),
]


def _demo_rules(users: dict[str, User]) -> list[ApprovalRuleIn]:
    cfo = users["cfo@demo.example.com"]
    return [
        ApprovalRuleIn(
            name="Small claims",
            rule_type="sequential",
            min_amount="0",
            max_amount="500",
            steps=[{"step_order": 1, "approver_role": "manager"}],
        ),
        ApprovalRuleIn(
            name="Medium claims",
            rule_type="sequential",
            min_amount="500.01",
            max_amount="5000",
            steps=[
                {"step_order": 1, "approver_role": "manager"},
                {"step_order": 2, "approver_role": "admin"},
            ],
        ),
        ApprovalRuleIn(
            name="Large claims",
            rule_type="hybrid",
            min_amount="5000.01",
            percentage_required=60,
            specific_approver_id=cfo.id,
        ),
    ]


def _get_or_create_company(db: Session) -> Company:
    company = db.execute(select(Company).where(Company.name == DEMO_COMPANY)).scalars().first()
    if company is not None:
        logger.info("Company %s already exists, skipping", DEMO_COMPANY)
        return company
    with transaction(db):
        company = Company(name=DEMO_COMPANY, base_currency="USD")
        db.add(company)
    logger.info("Seeded company: %s", DEMO_COMPANY)
    return company


def _get_or_create_users(db: Session, company: Company) -> dict[str, User]:
    users: dict[str, User] = {}
    with transaction(db):
        for email, name, role, manager_email in DEMO_USERS:
            user = db.execute(select(User).where(User.email == email)).scalars().first()
            if user is None:
                user = User(
                    company_id=company.id,
                    email=email,
                    name=name,
                    role=role,
                    manager_id=users[manager_email].id if manager_email else None,
                    is_active=True,
                )
                db.add(user)
                db.flush()
                logger.info("Seeded user: %s (%s)", email, role)
            users[email] = user
    return users


def seed_demo_company(db: Session) -> Company:
    company = _get_or_create_company(db)
    users = _get_or_create_users(db, company)

    existing = set(
        db.execute(select(ApprovalRule.name).where(ApprovalRule.company_id == company.id)).scalars()
    )
    for definition in _demo_rules(users):
        if definition.name in existing:
            logger.info("Rule already exists: %s, skipping", definition.name)
            continue
        rule_repository.create_rule(db, company.id, definition)
    return company


def run_seed() -> None:
    db = get_session_factory()()
    try:
        seed_demo_company(db)
    finally:
        db.close()
    logger.info("Seeding complete.")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    run_seed()
