from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .database import Base


class Account(Base):
    __tablename__ = "accounts"
    __table_args__ = (
        CheckConstraint("credits >= 0", name="ck_accounts_credits_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    display_name = Column(String, nullable=True)
    credits = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)

    tasks = relationship("GenerationTask", back_populates="owner")
    ledger_entries = relationship("LedgerEntry", back_populates="account")


class LedgerEntry(Base):
    """Append-only journal row, written in the same transaction as the balance change"""
    __tablename__ = "ledger_entries"

    id = Column(Integer, primary_key=True, index=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    delta = Column(Integer, nullable=False)
    balance_after = Column(Integer, nullable=False)
    reason = Column(String, nullable=False)  # opening, debit, refund, top_up
    task_id = Column(String, nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)

    account = relationship("Account", back_populates="ledger_entries")


class GenerationTask(Base):
    __tablename__ = "generation_tasks"

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(String, unique=True, index=True, nullable=False)
    owner_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    kind = Column(String, nullable=False)  # text-to-image, image-to-image

    # Input payload
    prompt = Column(Text, nullable=True)
    reference_image = Column(String, nullable=True)
    reference_name = Column(String, nullable=True)  # original upload file name
    ratio = Column(String, nullable=False, default="1:1")
    is_public = Column(Boolean, nullable=False, default=False)

    state = Column(String, nullable=False, default="processing", index=True)
    progress = Column(Integer, nullable=False, default=0)  # 0-100 percentage
    cost = Column(Integer, nullable=False)
    estimated_time = Column(Integer, nullable=True)  # seconds
    refunded = Column(Boolean, nullable=False, default=False)

    error_code = Column(String, nullable=True)
    error_message = Column(Text, nullable=True)
    message = Column(Text, nullable=True)

    artifact_id = Column(Integer, ForeignKey("artifacts.id"), nullable=True)

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    failed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    owner = relationship("Account", back_populates="tasks")
    artifact = relationship("Artifact", foreign_keys=[artifact_id])


class Artifact(Base):
    __tablename__ = "artifacts"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    task_id = Column(String, nullable=False, index=True)
    kind = Column(String, nullable=False)

    name = Column(String, nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    default_url = Column(String, nullable=False)  # outline rendering
    color_url = Column(String, nullable=False)  # filled rendering
    tags = Column(JSON, nullable=True)
    ratio = Column(String, nullable=False)
    size = Column(String, nullable=True)  # "width,height"
    is_public = Column(Boolean, nullable=False, default=False)
    prompt = Column(Text, nullable=True)
    source_reference = Column(String, nullable=True)
    additional_info = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)
