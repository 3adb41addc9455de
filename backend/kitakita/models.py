from sqlalchemy import Column, Integer, String, Float, Date, ForeignKey, JSON, DateTime
from sqlalchemy.orm import relationship
from .database import Base


class UserProfile(Base):
    __tablename__ = "user_profiles"

    id = Column(Integer, primary_key=True, index=True)
    uid = Column(String, unique=True, index=True)
    display_name = Column(String, nullable=True)
    # Free-form profile document, including the per-agent "agentMemory" map
    data = Column(JSON, default=dict)
    updated_at = Column(DateTime, nullable=True)

    accounts = relationship("BankAccount", back_populates="owner")


class BankAccount(Base):
    __tablename__ = "bank_accounts"

    id = Column(String, primary_key=True, index=True)
    uid = Column(String, ForeignKey("user_profiles.uid"), index=True)
    name = Column(String)
    balance = Column(Float, default=0.0)
    category = Column(String, nullable=True)      # traditional-bank, digital-wallet, cash, investment, loan
    account_type = Column(String, nullable=True)  # savings, checking, credit-card
    provider = Column(String, nullable=True)
    interest_rate = Column(Float, nullable=True)    # annual, percent
    minimum_payment = Column(Float, nullable=True)

    owner = relationship("UserProfile", back_populates="accounts")
    transactions = relationship("Transaction", back_populates="account")


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(String, primary_key=True, index=True)
    uid = Column(String, index=True)
    amount = Column(Float)
    type = Column(String)  # income, expense, deposit, withdrawal, transfer, savings
    category = Column(String, nullable=True)
    description = Column(String, nullable=True)
    txn_date = Column(Date, nullable=True)
    account_id = Column(String, ForeignKey("bank_accounts.id"), nullable=True)

    account = relationship("BankAccount", back_populates="transactions")
