"""SQLAlchemy ORM models for accounts and loans"""

from sqlalchemy import BigInteger, CheckConstraint, Column, DateTime, Integer, Text
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class AccountRecord(Base):
    """Account balance in cents"""

    __tablename__ = "ledger_account"
    __table_args__ = (CheckConstraint("balance_cents >= 0", name="ck_ledger_account_balance_non_negative"),)

    id = Column(Text, primary_key=True)
    balance_cents = Column(BigInteger, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class LoanRecord(Base):
    """Peer-to-peer loan with optimistic version counter"""

    __tablename__ = "ledger_loan"
    __table_args__ = (
        CheckConstraint(
            "remaining_cents >= 0 AND remaining_cents <= principal_cents",
            name="ck_ledger_loan_remaining_bounds",
        ),
        CheckConstraint("status IN ('pending', 'approved', 'repaid')", name="ck_ledger_loan_status"),
    )

    id = Column(Text, primary_key=True)
    borrower_id = Column(Text, nullable=False, index=True)
    lender_id = Column(Text, nullable=True, index=True)
    principal_cents = Column(BigInteger, nullable=False)
    remaining_cents = Column(BigInteger, nullable=False)
    status = Column(Text, nullable=False, default="pending")
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
