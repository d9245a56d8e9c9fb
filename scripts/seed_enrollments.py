"""
Seed script — creates a demo course and students, then queues enrollments.

Usage:
    python -m scripts.seed_enrollments

This creates (directly in the database):
- 1 instructor
- 1 published course with 3 seats
- 5 students

and then sends 6 enrollment requests to the running API:
- 5 students at mixed priorities (2 of them will get "Course is full")
- 1 instructor request (rejected synchronously with 400)

Run this after the API and a worker are up.
"""

import time
import uuid

import httpx
from sqlalchemy.orm import Session

from models.base import Base, SyncSessionLocal, sync_engine
from models.course import Course
from models.enums import JobPriority, UserRole
from models.user import User

BASE_URL = "http://localhost:8000"


def create_user(session: Session, username: str, role: UserRole) -> User:
    user = User(
        id=uuid.uuid4(),
        username=username,
        email=f"{username}-{uuid.uuid4().hex[:8]}@example.com",
        role=role.value,
    )
    session.add(user)
    return user


def create_students(session: Session, count: int, prefix: str = "student") -> list[User]:
    return [create_user(session, f"{prefix}{i}", UserRole.STUDENT) for i in range(count)]


def create_course(session: Session, instructor: User, max_students=None, title: str = "Intro to Python") -> Course:
    course = Course(
        id=uuid.uuid4(),
        title=title,
        description="Variables, functions and a first look at the standard library.",
        instructor_id=instructor.id,
        instructor_name=instructor.username,
        category="programming",
        duration=12.0,
        price=0.0,
        max_students=max_students,
        is_published=True,
    )
    session.add(course)
    return course


def seed():
    Base.metadata.create_all(sync_engine)
    with SyncSessionLocal() as session:
        instructor = create_user(session, "instructor", UserRole.INSTRUCTOR)
        course = create_course(session, instructor, max_students=3)
        students = create_students(session, 5)
        session.commit()
        course_id = course.id
        instructor_id = instructor.id
        student_ids = [s.id for s in students]

    client = httpx.Client(base_url=BASE_URL, timeout=10.0)
    priorities = [
        JobPriority.LOW, JobPriority.NORMAL, JobPriority.CRITICAL,
        JobPriority.HIGH, JobPriority.NORMAL,
    ]

    print(f"Queueing {len(student_ids)} enrollments for course {course_id} (3 seats)...\n")
    job_ids = []
    for student_id, priority in zip(student_ids, priorities):
        resp = client.post(
            f"/courses/{course_id}/enroll",
            json={"priority": priority.value},
            headers={"X-User-Id": str(student_id)},
        )
        resp.raise_for_status()
        data = resp.json()
        job_ids.append((data["jobId"], student_id))
        print(f"  [{data['status']}] job {data['jobId']} priority={priority.name}")

    resp = client.post(f"/courses/{course_id}/enroll", headers={"X-User-Id": str(instructor_id)})
    print(f"\nInstructor enrollment attempt → {resp.status_code}: {resp.json()['detail']}")

    print("\nWaiting for the worker...")
    time.sleep(3)
    for job_id, student_id in job_ids:
        status = client.get(f"/queue/job/{job_id}", headers={"X-User-Id": str(student_id)}).json()
        print(f"  job {job_id}: {status['status']} → {status.get('result')}")

    print("\nQueue stats:  curl -H 'X-User-Id: <instructor id>' http://localhost:8000/queue/stats")
    print(f"Instructor id: {instructor_id}")


if __name__ == "__main__":
    seed()
