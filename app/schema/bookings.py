from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class BookingJobRow(Base):
  __tablename__ = "booking_jobs"
  __table_args__ = (
    Index("ix_booking_jobs_status_due", "status", "due_at"),
    Index("ix_booking_jobs_candidates", "candidate_ids", postgresql_using="gin"),
  )

  job_id: Mapped[str] = mapped_column(String, primary_key=True)
  customer_id: Mapped[str] = mapped_column(ForeignKey("customers.customer_id"), nullable=False, index=True)
  status: Mapped[str] = mapped_column(String, nullable=False)
  from_language: Mapped[str] = mapped_column(String, nullable=False)
  to_language: Mapped[str] = mapped_column(String, nullable=False)
  due_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
  duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
  on_site: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
  town: Mapped[str | None] = mapped_column(String, nullable=True)
  immediate: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
  required_gender: Mapped[str | None] = mapped_column(String, nullable=True)
  certified_only: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
  instructions: Mapped[str | None] = mapped_column(Text, nullable=True)
  user_email: Mapped[str | None] = mapped_column(String, nullable=True)
  translator_id: Mapped[str | None] = mapped_column(ForeignKey("translators.translator_id"), nullable=True, index=True)
  candidate_ids: Mapped[list[str]] = mapped_column(ARRAY(String), nullable=False, default=list)
  declined_ids: Mapped[list[str]] = mapped_column(ARRAY(String), nullable=False, default=list)
  excluded_ids: Mapped[list[str]] = mapped_column(ARRAY(String), nullable=False, default=list)
  offer_round: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  offered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  offer_dispatched_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  cancelled_by: Mapped[str | None] = mapped_column(String, nullable=True)
  customer_not_call: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
  admin_comments: Mapped[str] = mapped_column(Text, nullable=False, default="")
  flagged: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
  manually_handled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
  by_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
  session_time: Mapped[str | None] = mapped_column(String, nullable=True)
  version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class BookingDistanceRow(Base):
  __tablename__ = "booking_distances"

  job_id: Mapped[str] = mapped_column(ForeignKey("booking_jobs.job_id", ondelete="CASCADE"), primary_key=True)
  distance: Mapped[str | None] = mapped_column(String, nullable=True)
  time: Mapped[str | None] = mapped_column(String, nullable=True)


class TranslatorRow(Base):
  __tablename__ = "translators"

  translator_id: Mapped[str] = mapped_column(String, primary_key=True)
  name: Mapped[str] = mapped_column(String, nullable=False)
  languages: Mapped[list[str]] = mapped_column(ARRAY(String), nullable=False, default=list)
  available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
  towns: Mapped[list[str]] = mapped_column(ARRAY(String), nullable=False, default=list)
  gender: Mapped[str | None] = mapped_column(String, nullable=True)
  certified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
  blocked_customer_ids: Mapped[list[str]] = mapped_column(ARRAY(String), nullable=False, default=list)
  push_token: Mapped[str | None] = mapped_column(String, nullable=True)
  phone_number: Mapped[str | None] = mapped_column(String, nullable=True)


class CustomerRow(Base):
  __tablename__ = "customers"

  customer_id: Mapped[str] = mapped_column(String, primary_key=True)
  name: Mapped[str] = mapped_column(String, nullable=False)
  push_token: Mapped[str | None] = mapped_column(String, nullable=True)
  phone_number: Mapped[str | None] = mapped_column(String, nullable=True)
  email: Mapped[str | None] = mapped_column(String, nullable=True)
