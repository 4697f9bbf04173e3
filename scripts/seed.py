"""Seed a local development database with sample admin data."""
from __future__ import annotations

from datetime import UTC, datetime, timedelta

from dotenv import load_dotenv

load_dotenv()

from app import models
from app.config import get_settings
from app.db import create_all, get_sessionmaker


def main() -> None:
    settings = get_settings()
    print(f"Using database: {settings.database_url}")

    create_all()
    session = get_sessionmaker()()

    try:
        school = models.School(name="SMA Negeri 1", city="Bandung", province="Jawa Barat")
        session.add(school)
        session.flush()

        alice = models.User(username="alice", email="alice@example.com", token_balance=25)
        bob = models.User(username="bob", email="bob@example.com", user_type="admin")
        session.add_all([alice, bob])
        session.flush()
        session.add(models.UserProfile(user_id=alice.id, full_name="Alice Example", school_id=school.id))

        now = datetime.now(tz=UTC)
        statuses = [
            models.JobStatus.COMPLETED,
            models.JobStatus.FAILED,
            models.JobStatus.PROCESSING,
            models.JobStatus.QUEUED,
        ]
        for index, status in enumerate(statuses):
            started = now - timedelta(minutes=10 + index)
            session.add(
                models.AnalysisJob(
                    job_id=f"seed-job-{index}",
                    user_id=alice.id,
                    status=status,
                    processing_started_at=started,
                    completed_at=started + timedelta(seconds=90) if status == models.JobStatus.COMPLETED else None,
                )
            )

        conversation = models.Conversation(user_id=alice.id, title="Career guidance")
        session.add(conversation)
        session.flush()
        session.add_all(
            [
                models.Message(conversation_id=conversation.id, sender_type="user", content="Hello"),
                models.Message(conversation_id=conversation.id, sender_type="assistant", content="Hi Alice!"),
            ]
        )
        session.commit()
        print("Seed data inserted.")
    finally:
        session.close()


if __name__ == "__main__":
    main()
