"""
Campus Placement Portal
Drive lifecycle, eligibility, registrations and attendance for a
college placement cell.

Architecture:
- PostgreSQL: Drives, students, eligibility, selections, registrations
- Celery + Redis: Background jobs (eligibility, publish, exports, maintenance)
- MongoDB: Job results and dead-lettered jobs
"""

__version__ = "1.0.0"
