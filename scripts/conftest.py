"""
Shared pytest fixtures.

Every test gets its own SQLite file database bound to SessionLocal, so
service code runs unchanged through get_db_session(). The job queue is
replaced by in-memory fakes, MongoDB by mongomock and Redis by fakeredis.
"""

import itertools

import fakeredis
import mongomock
import pytest
from sqlalchemy import create_engine, event, text

from placement_portal.core.exceptions import QueueUnavailable
from placement_portal.core.auth import create_access_token
from placement_portal.db.postgres import SessionLocal, engine as default_engine, get_db_session
from placement_portal.db.tables import create_schema
from placement_portal.jobs.dispatcher import JobDispatcher, get_job_dispatcher
from placement_portal.models import DriveCriteria
from placement_portal.services.dead_letter_service import DeadLetterService
from placement_portal.utils.cache import AnalyticsCache, get_analytics_cache

# Not a real hash; only the login test needs a verifiable one
DUMMY_HASH = "$2b$12$placeholderplaceholderplaceholderplaceholderplacehold"


def _sqlite_engine(path):
    engine = create_engine(f"sqlite:///{path}")

    @event.listens_for(engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        # let SQLAlchemy emit BEGIN itself so SAVEPOINT works
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


@pytest.fixture(autouse=True)
def db_engine(tmp_path):
    engine = _sqlite_engine(tmp_path / "placement.db")
    create_schema(engine)
    SessionLocal.configure(bind=engine)
    get_job_dispatcher.cache_clear()
    get_analytics_cache.cache_clear()
    yield engine
    SessionLocal.configure(bind=default_engine)
    get_job_dispatcher.cache_clear()
    get_analytics_cache.cache_clear()
    engine.dispose()


class Seeder:
    """Inserts rows in their own committed transactions."""

    def __init__(self):
        self._counter = itertools.count(1)

    def user(self, role="COORDINATOR", name=None, email=None, password_hash=DUMMY_HASH, is_active=True):
        n = next(self._counter)
        with get_db_session() as db:
            return db.execute(
                text("""
                    INSERT INTO users (name, email, password_hash, role, is_active)
                    VALUES (:name, :email, :hash, :role, :active)
                    RETURNING user_id
                """),
                {
                    "name": name or f"{role.title()} {n}",
                    "email": email or f"{role.lower()}{n}@college.edu",
                    "hash": password_hash,
                    "role": role,
                    "active": is_active,
                }
            ).scalar_one()

    def student(self, cgpa=8.0, tenth=80.0, twelfth=80.0, backlogs=0, branch="CSE", name=None):
        student_id = self.user(role="STUDENT", name=name)
        with get_db_session() as db:
            db.execute(
                text("""
                    INSERT INTO students (student_id, roll_number, branch, cgpa, tenth_percent,
                                          twelfth_percent, active_backlogs)
                    VALUES (:sid, :roll, :branch, :cgpa, :tenth, :twelfth, :backlogs)
                """),
                {
                    "sid": student_id, "roll": f"R{student_id:04d}", "branch": branch,
                    "cgpa": cgpa, "tenth": tenth, "twelfth": twelfth, "backlogs": backlogs,
                }
            )
        return student_id

    def drive(self, posted_by=None, status="pending", auto_published=False,
              min_cgpa=0, min_10th=0, min_12th=0, max_backlogs=0,
              published_by=None, company_name="Acme", job_title="Engineer"):
        criteria = DriveCriteria(min_cgpa=min_cgpa, min_10th=min_10th, min_12th=min_12th, max_backlogs=max_backlogs)
        with get_db_session() as db:
            return db.execute(
                text("""
                    INSERT INTO placement_drives
                        (company_name, job_title, min_cgpa, min_10th, min_12th, max_backlogs,
                         status, auto_published, posted_by, published_by)
                    VALUES (:company, :title, :min_cgpa, :min_10th, :min_12th, :max_backlogs,
                            :status, :auto, :posted_by, :published_by)
                    RETURNING drive_id
                """),
                {
                    "company": company_name, "title": job_title, **criteria.as_params(),
                    "status": status, "auto": auto_published,
                    "posted_by": posted_by, "published_by": published_by,
                }
            ).scalar_one()

    def eligible(self, drive_id, *student_ids):
        with get_db_session() as db:
            for sid in student_ids:
                db.execute(
                    text("""
                        INSERT INTO drive_eligibility_results (drive_id, student_id, is_eligible)
                        VALUES (:did, :sid, TRUE)
                    """),
                    {"did": drive_id, "sid": sid}
                )

    def selected(self, drive_id, *student_ids):
        with get_db_session() as db:
            for sid in student_ids:
                db.execute(
                    text("INSERT INTO drive_coordinator_selections (drive_id, student_id) VALUES (:did, :sid)"),
                    {"did": drive_id, "sid": sid}
                )


@pytest.fixture
def seed():
    return Seeder()


def rows(sql, **params):
    """All rows of `sql` as dicts, read in a fresh transaction."""
    with get_db_session() as db:
        return [dict(r) for r in db.execute(text(sql), params).mappings().all()]


@pytest.fixture
def query():
    return rows


# ============================================================
# JOB QUEUE FAKES
# ============================================================

class RecordingQueue:
    def __init__(self):
        self.calls = []

    def enqueue(self, name, payload, attempts):
        self.calls.append((name, payload, attempts))
        return f"task-{len(self.calls)}"


class DownQueue:
    def __init__(self):
        self.attempts = 0

    def enqueue(self, name, payload, attempts):
        self.attempts += 1
        raise QueueUnavailable("broker down", cause=ConnectionError("Connection refused"))


@pytest.fixture
def recording_queue():
    return RecordingQueue()


@pytest.fixture
def down_queue():
    return DownQueue()


@pytest.fixture
def queued_dispatcher(recording_queue):
    return JobDispatcher(queue=recording_queue, enabled=True)


@pytest.fixture
def fallback_dispatcher(down_queue):
    return JobDispatcher(queue=down_queue, enabled=True)


# ============================================================
# MONGO / REDIS / HTTP
# ============================================================

@pytest.fixture
def dead_letter_service():
    collection = mongomock.MongoClient()["placement_jobs"]["dead_letter_jobs"]
    return DeadLetterService(collection)


@pytest.fixture
def redis_client():
    return fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)


@pytest.fixture
def analytics_cache(redis_client):
    return AnalyticsCache(redis_client, ttl_seconds=30)


@pytest.fixture
def auth_header():
    def make(user_id, role):
        token = create_access_token({"sub": str(user_id), "role": role})
        return {"Authorization": f"Bearer {token}"}
    return make
