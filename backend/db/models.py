from datetime import datetime
from sqlalchemy import (
    Column, Integer, Text, Float, ForeignKey, Index,
    DateTime,
)
from sqlalchemy.orm import relationship
from db.database import Base


class Client(Base):
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, autoincrement=True)
    display_name = Column(Text, nullable=False)
    timezone = Column(Text)  # IANA zone; null -> host zone
    checkin_start_date = Column(Text)  # YYYY-MM-DD
    checkin_frequency = Column(Text, default="weekly")  # weekly | biweekly | monthly
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    habit_logs = relationship("HabitLog", back_populates="client", cascade="all, delete-orphan")
    checkins = relationship("Checkin", back_populates="client", cascade="all, delete-orphan")
    baseline_entries = relationship("BaselineEntry", back_populates="client", cascade="all, delete-orphan")
    dismissed_reminders = relationship("DismissedReminder", back_populates="client", cascade="all, delete-orphan")


class HabitLog(Base):
    __tablename__ = "habit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False)
    log_date = Column(Text, nullable=False)  # YYYY-MM-DD in the client's zone
    calories = Column(Float)
    protein_g = Column(Float)
    carbs_g = Column(Float)
    fats_g = Column(Float)
    weight_value = Column(Float)
    weight_unit = Column(Text)  # kg | lb
    sleep_hours = Column(Float)
    steps = Column(Integer)
    energy = Column(Integer)
    hunger = Column(Integer)
    stress = Column(Integer)
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    client = relationship("Client", back_populates="habit_logs")


class Checkin(Base):
    __tablename__ = "checkins"

    id = Column(Integer, primary_key=True, autoincrement=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False)
    week_ending_saturday = Column(Text, nullable=False)  # YYYY-MM-DD
    submitted_at = Column(DateTime)
    pt_feedback = Column(Text)
    reviewed_at = Column(DateTime)
    reviewed_by = Column(Text)
    status = Column(Text)  # draft | submitted
    created_at = Column(DateTime, default=datetime.utcnow)

    client = relationship("Client", back_populates="checkins")


class BaselineEntry(Base):
    __tablename__ = "baseline_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False)
    status = Column(Text, nullable=False, default="draft")  # draft | submitted
    submitted_at = Column(DateTime)
    coach_notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)

    client = relationship("Client", back_populates="baseline_entries")


class DismissedReminder(Base):
    __tablename__ = "dismissed_reminders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False)
    key = Column(Text, nullable=False)
    dismissed_for_date = Column(Text, nullable=False)  # YYYY-MM-DD
    created_at = Column(DateTime, default=datetime.utcnow)

    client = relationship("Client", back_populates="dismissed_reminders")


# --- Indexes ---
Index("idx_habit_logs_client_date", HabitLog.client_id, HabitLog.log_date, unique=True)
Index("idx_checkins_client_week", Checkin.client_id, Checkin.week_ending_saturday)
Index("idx_baseline_entries_client", BaselineEntry.client_id, BaselineEntry.created_at)
Index(
    "idx_dismissed_reminders_client_key_date",
    DismissedReminder.client_id,
    DismissedReminder.key,
    DismissedReminder.dismissed_for_date,
    unique=True,
)
