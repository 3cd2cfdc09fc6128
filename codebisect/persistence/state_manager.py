#!/usr/bin/env python3
"""State Manager - Session history storage using SQLAlchemy ORM.

Records bisection sessions and their steps, and renders reports of past
sessions.
"""

import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from sqlalchemy import create_engine, select
from sqlalchemy.orm import scoped_session, sessionmaker

from codebisect.errors import BisectError
from codebisect.persistence.models import Base, Iteration
from codebisect.persistence.models import (
    Session as SessionModel,
)


logger = logging.getLogger(__name__)

# Constants
DEFAULT_DB_PATH = "history.db"


class DatabaseError(BisectError):
    """Base exception for database-related errors."""


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class BisectSession:
    """Bisection session data.

    Attributes:
        session_id: Unique session identifier
        runtime: Runtime that was bisected
        quality: Quality that was bisected
        flavor: Flavor that was bisected
        good_input: Good commit or version as given (None for the oldest build)
        bad_input: Bad commit or version as given (None for the newest build)
        start_time: Session start timestamp
        end_time: Session end timestamp (None if running)
        status: Session status (running, completed, quit, failed)
        first_bad_commit: First bad commit found (None until complete)
        last_good_commit: Last good commit found (None until complete)
    """

    session_id: int
    runtime: str
    quality: str
    flavor: str
    good_input: Optional[str]
    bad_input: Optional[str]
    start_time: str
    end_time: Optional[str] = None
    status: str = "running"
    first_bad_commit: Optional[str] = None
    last_good_commit: Optional[str] = None


@dataclass
class SessionIteration:
    """Bisection step record.

    Attributes:
        iteration_id: Unique iteration identifier
        session_id: Parent session ID
        iteration_num: Iteration number (1-indexed)
        commit_sha: Commit of the build that was tried
        verdict: Verdict given (good, bad, quit), None while running
        start_time: Iteration start timestamp
        end_time: Iteration end timestamp
        duration: Duration in seconds
        error_message: Error message if the build failed to install or launch
    """

    iteration_id: int
    session_id: int
    iteration_num: int
    commit_sha: str
    verdict: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    duration: Optional[float] = None
    error_message: Optional[str] = None


def _to_session(row: SessionModel) -> BisectSession:
    return BisectSession(
        session_id=row.session_id,
        runtime=row.runtime,
        quality=row.quality,
        flavor=row.flavor,
        good_input=row.good_input,
        bad_input=row.bad_input,
        start_time=row.start_time,
        end_time=row.end_time,
        status=row.status,
        first_bad_commit=row.first_bad_commit,
        last_good_commit=row.last_good_commit,
    )


class StateManager:
    """Manage session history using SQLAlchemy ORM.

    Attributes:
        db_path: Path to SQLite database file
        engine: SQLAlchemy engine
        Session: Scoped session factory
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH) -> None:
        """Initialize state manager with SQLAlchemy.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = str(db_path)

        db_parent = Path(self.db_path).parent
        if db_parent != Path():
            db_parent.mkdir(parents=True, exist_ok=True)

        self.engine = create_engine(
            f"sqlite:///{self.db_path}",
            connect_args={"check_same_thread": False},
            echo=False,
        )

        session_factory = sessionmaker(bind=self.engine)
        self.Session = scoped_session(session_factory)

        self._init_database()

    def _init_database(self) -> None:
        """Initialize database schema."""
        try:
            Base.metadata.create_all(self.engine)
            logger.debug(f"Database initialized at {self.db_path}")
        except Exception as exc:
            msg = f"Failed to initialize database: {exc}"
            logger.error(msg)
            raise DatabaseError(msg) from exc

    def create_session(
        self,
        runtime: str,
        quality: str,
        flavor: str,
        good_input: Optional[str] = None,
        bad_input: Optional[str] = None,
        config: Optional[Dict[str, Any]] = None,
    ) -> int:
        """Create new bisection session.

        Args:
            runtime: Runtime being bisected
            quality: Quality being bisected
            flavor: Flavor being bisected
            good_input: Good commit or version as given
            bad_input: Bad commit or version as given
            config: Optional configuration dict

        Returns:
            Session ID

        Raises:
            DatabaseError: If session creation fails
        """
        session = self.Session()
        try:
            new_session = SessionModel(
                runtime=runtime,
                quality=quality,
                flavor=flavor,
                good_input=good_input,
                bad_input=bad_input,
                start_time=utc_now(),
                status="running",
                config=json.dumps(config) if config else None,
            )

            session.add(new_session)
            session.commit()
            session_id = new_session.session_id

            logger.debug(f"Created bisection session {session_id}")
            return session_id

        except Exception as exc:
            session.rollback()
            msg = f"Failed to create session: {exc}"
            logger.error(msg)
            raise DatabaseError(msg) from exc
        finally:
            session.close()

    def get_session(self, session_id: int) -> Optional[BisectSession]:
        """Get session by ID.

        Returns:
            BisectSession object or None if not found
        """
        session = self.Session()
        try:
            stmt = select(SessionModel).where(SessionModel.session_id == session_id)
            result = session.execute(stmt).scalar_one_or_none()
            return _to_session(result) if result else None
        finally:
            session.close()

    def get_latest_session(self) -> Optional[BisectSession]:
        """Get most recent session."""
        session = self.Session()
        try:
            stmt = select(SessionModel).order_by(SessionModel.session_id.desc()).limit(1)
            result = session.execute(stmt).scalar_one_or_none()
            return _to_session(result) if result else None
        finally:
            session.close()

    def list_sessions(self, limit: Optional[int] = None) -> List[BisectSession]:
        """List sessions, most recent first."""
        session = self.Session()
        try:
            stmt = select(SessionModel).order_by(SessionModel.session_id.desc())
            if limit:
                stmt = stmt.limit(limit)
            return [_to_session(row) for row in session.execute(stmt).scalars().all()]
        finally:
            session.close()

    def update_session(self, session_id: int, **kwargs: Any) -> None:
        """Update session fields.

        Args:
            session_id: Session ID to update
            **kwargs: Fields to update (end_time, status, first_bad_commit, last_good_commit)

        Raises:
            DatabaseError: If update fails
        """
        session = self.Session()
        try:
            stmt = select(SessionModel).where(SessionModel.session_id == session_id)
            db_session = session.execute(stmt).scalar_one_or_none()

            if not db_session:
                logger.warning(f"Session {session_id} not found for update")
                return

            valid_fields = {"end_time", "status", "first_bad_commit", "last_good_commit"}
            for field, value in kwargs.items():
                if field in valid_fields:
                    setattr(db_session, field, value)

            session.commit()

        except Exception as exc:
            session.rollback()
            msg = f"Failed to update session: {exc}"
            logger.error(msg)
            raise DatabaseError(msg) from exc
        finally:
            session.close()

    def finish_session(
        self,
        session_id: int,
        status: str,
        first_bad_commit: Optional[str] = None,
        last_good_commit: Optional[str] = None,
    ) -> None:
        """Mark a session as ended."""
        self.update_session(
            session_id,
            status=status,
            end_time=utc_now(),
            first_bad_commit=first_bad_commit,
            last_good_commit=last_good_commit,
        )

    def create_iteration(self, session_id: int, iteration_num: int, commit_sha: str) -> int:
        """Create new iteration.

        Args:
            session_id: Parent session ID
            iteration_num: Iteration number
            commit_sha: Commit of the build being tried

        Returns:
            Iteration ID

        Raises:
            DatabaseError: If iteration creation fails
        """
        session = self.Session()
        try:
            new_iteration = Iteration(
                session_id=session_id,
                iteration_num=iteration_num,
                commit_sha=commit_sha,
                start_time=utc_now(),
            )

            session.add(new_iteration)
            session.commit()
            iteration_id = new_iteration.iteration_id

            logger.debug(f"Created iteration {iteration_id}")
            return iteration_id

        except Exception as exc:
            session.rollback()
            msg = f"Failed to create iteration: {exc}"
            logger.error(msg)
            raise DatabaseError(msg) from exc
        finally:
            session.close()

    def update_iteration(self, iteration_id: int, **kwargs: Any) -> None:
        """Update iteration fields.

        Args:
            iteration_id: Iteration ID to update
            **kwargs: Fields to update (verdict, end_time, duration, error_message)

        Raises:
            DatabaseError: If update fails
        """
        session = self.Session()
        try:
            stmt = select(Iteration).where(Iteration.iteration_id == iteration_id)
            db_iteration = session.execute(stmt).scalar_one_or_none()

            if not db_iteration:
                logger.warning(f"Iteration {iteration_id} not found for update")
                return

            valid_fields = {"verdict", "end_time", "duration", "error_message"}
            for field, value in kwargs.items():
                if field in valid_fields:
                    setattr(db_iteration, field, value)

            session.commit()

        except Exception as exc:
            session.rollback()
            msg = f"Failed to update iteration: {exc}"
            logger.error(msg)
            raise DatabaseError(msg) from exc
        finally:
            session.close()

    def get_iterations(self, session_id: int) -> List[SessionIteration]:
        """Get all iterations for a session, in order."""
        session = self.Session()
        try:
            stmt = (
                select(Iteration)
                .where(Iteration.session_id == session_id)
                .order_by(Iteration.iteration_num)
            )
            results = session.execute(stmt).scalars().all()

            return [
                SessionIteration(
                    iteration_id=row.iteration_id,
                    session_id=row.session_id,
                    iteration_num=row.iteration_num,
                    commit_sha=row.commit_sha,
                    verdict=row.verdict,
                    start_time=row.start_time,
                    end_time=row.end_time,
                    duration=row.duration,
                    error_message=row.error_message,
                )
                for row in results
            ]
        finally:
            session.close()

    def generate_summary(self, session_id: int) -> Dict[str, Any]:
        """Generate summary of a session.

        Returns:
            Summary dictionary, empty if the session does not exist
        """
        session_data = self.get_session(session_id)
        if not session_data:
            return {}

        iterations = self.get_iterations(session_id)

        verdicts = {"good": 0, "bad": 0, "unknown": 0}
        for it in iterations:
            key = it.verdict if it.verdict in verdicts else "unknown"
            verdicts[key] += 1

        summary = asdict(session_data)
        summary.update(
            {
                "total_iterations": len(iterations),
                "verdicts": verdicts,
                "total_duration_seconds": sum(it.duration for it in iterations if it.duration),
                "iterations": [asdict(it) for it in iterations],
            }
        )
        return summary

    def export_report(self, session_id: int, format: str = "text") -> str:
        """Export session report.

        Args:
            session_id: Session ID
            format: Output format (json or text)

        Returns:
            Report string, empty if the session does not exist
        """
        summary = self.generate_summary(session_id)
        if not summary:
            return ""

        if format == "json":
            return json.dumps(summary, indent=2)

        report = []
        report.append("=" * 70)
        report.append("BISECTION REPORT")
        report.append("=" * 70)
        report.append(f"\nSession ID: {summary['session_id']}")
        report.append(
            f"Build kind: {summary['runtime']} / {summary['quality']} / {summary['flavor']}"
        )
        report.append(f"Good input: {summary['good_input'] or '(oldest)'}")
        report.append(f"Bad input:  {summary['bad_input'] or '(newest)'}")
        report.append(f"Status: {summary['status']}")
        report.append(f"\nTotal iterations: {summary['total_iterations']}")
        report.append(f"Total time: {summary['total_duration_seconds']:.0f}s")

        report.append("\n" + "-" * 70)
        for it in summary["iterations"]:
            report.append(
                f"{it['iteration_num']:3d}. {it['commit_sha'][:7]} | "
                f"{it['verdict'] or 'unknown':7s} | "
                f"{it['duration'] or 0:6.0f}s"
            )
            if it["error_message"]:
                report.append(f"     Error: {it['error_message']}")

        if summary["first_bad_commit"]:
            report.append("\n" + "=" * 70)
            report.append(f"First bad commit: {summary['first_bad_commit']}")
            report.append(f"Last good commit: {summary['last_good_commit']}")

        report.append("=" * 70)
        return "\n".join(report)

    def close(self) -> None:
        """Close database connection and cleanup."""
        self.Session.remove()
        self.engine.dispose()
        logger.debug("Database connections closed")
