#!/usr/bin/env python3
"""SQLAlchemy ORM Models for the session history database.

Defines database schema using SQLAlchemy declarative models.
"""

from typing import List, Optional

from sqlalchemy import Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class Session(Base):
    """Bisection session model.

    Tracks a complete bisection run from start to finish.
    """

    __tablename__ = "sessions"

    session_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    runtime: Mapped[str] = mapped_column(String, nullable=False)
    quality: Mapped[str] = mapped_column(String, nullable=False)
    flavor: Mapped[str] = mapped_column(String, nullable=False)
    good_input: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    bad_input: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    start_time: Mapped[str] = mapped_column(String, nullable=False)
    end_time: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="running")
    first_bad_commit: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    last_good_commit: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    config: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # JSON as TEXT

    # Relationships
    iterations: Mapped[List["Iteration"]] = relationship(
        "Iteration", back_populates="session", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return (
            f"<Session(id={self.session_id}, status={self.status}, "
            f"runtime={self.runtime}, quality={self.quality})>"
        )


class Iteration(Base):
    """Bisection step model.

    Represents a single launch and verdict for a specific commit.
    """

    __tablename__ = "iterations"

    iteration_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[int] = mapped_column(Integer, ForeignKey("sessions.session_id"), nullable=False)
    iteration_num: Mapped[int] = mapped_column(Integer, nullable=False)
    commit_sha: Mapped[str] = mapped_column(String, nullable=False)
    verdict: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    start_time: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    end_time: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    duration: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Relationships
    session: Mapped["Session"] = relationship("Session", back_populates="iterations")

    def __repr__(self) -> str:
        return (
            f"<Iteration(id={self.iteration_id}, num={self.iteration_num}, "
            f"commit={self.commit_sha[:7]}, verdict={self.verdict})>"
        )
