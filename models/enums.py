"""
Shared enumerations used across the entire project.

Using Python enums (inheriting from str / int) means:
- They serialize to JSON automatically ("waiting", not "JobState.WAITING")
- They work as SQLAlchemy column values and Redis hash values
- Typos become immediate errors instead of silent bugs
"""

import enum


class JobState(str, enum.Enum):
    WAITING = "waiting"        # enqueued, eligible for lease
    ACTIVE = "active"          # leased by a worker slot
    COMPLETED = "completed"    # processed; result says whether enrollment happened
    FAILED = "failed"          # infra errors exhausted every attempt
    DELAYED = "delayed"        # waiting for a start time (backoff or requested delay)


class JobPriority(int, enum.Enum):
    """Named priority tiers. Higher value is leased earlier."""
    LOW = 1
    NORMAL = 5
    HIGH = 10
    CRITICAL = 15


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    INSTRUCTOR = "instructor"
    STUDENT = "student"


class CourseDifficulty(str, enum.Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
