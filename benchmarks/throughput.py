"""
Throughput benchmark — measures enrollments/sec through the whole pipeline.

How it works:
1. Create a published course with `capacity` seats and `num_students` students
2. Queue one enrollment request per student via the API
3. Wait until every job reaches a terminal state
4. Calculate: throughput = num_students / total_wall_clock_time

With num_students > capacity this is also an over-enrollment check under
real concurrency: the course must end with exactly `capacity` enrollments,
no matter how many worker threads and processes are racing.
"""

import time

import httpx

from models.base import Base, SyncSessionLocal, sync_engine
from models.course import Course
from models.enums import UserRole
from scripts.seed_enrollments import create_course, create_students, create_user

BASE_URL = "http://localhost:8000"


class ThroughputBenchmark:

    def __init__(self, base_url: str = BASE_URL, num_students: int = 100, capacity: int = 50):
        self.base_url = base_url
        self.num_students = num_students
        self.capacity = capacity
        self.client = httpx.Client(timeout=30.0)

    def setup(self) -> tuple[str, str, list[str]]:
        """Create the course and students. Returns (course_id, instructor_id, student_ids)."""
        Base.metadata.create_all(sync_engine)
        with SyncSessionLocal() as session:
            instructor = create_user(session, "bench-instructor", UserRole.INSTRUCTOR)
            course = create_course(session, instructor, max_students=self.capacity, title="Benchmark course")
            students = create_students(session, self.num_students, prefix="bench-student")
            session.commit()
            return str(course.id), str(instructor.id), [str(s.id) for s in students]

    def submit_enrollments(self, course_id: str, student_ids: list[str]) -> list[str]:
        job_ids = []
        for student_id in student_ids:
            resp = self.client.post(
                f"{self.base_url}/courses/{course_id}/enroll",
                headers={"X-User-Id": student_id},
            )
            resp.raise_for_status()
            job_ids.append(resp.json()["jobId"])
        return job_ids

    def wait_for_completion(self, job_ids: list[str], user_id: str, timeout: float = 120.0) -> float:
        """Poll job status until every job is completed or failed."""
        start = time.monotonic()
        pending = set(job_ids)
        while time.monotonic() - start < timeout:
            for job_id in list(pending):
                resp = self.client.get(
                    f"{self.base_url}/queue/job/{job_id}", headers={"X-User-Id": user_id}
                )
                # 404 means the job was trimmed after finishing
                if resp.status_code == 404 or resp.json()["status"] in ("completed", "failed"):
                    pending.discard(job_id)
            if not pending:
                return time.monotonic() - start
            time.sleep(0.5)
        raise TimeoutError(f"{len(pending)} jobs didn't finish within {timeout}s")

    def enrolled_count(self, course_id: str) -> int:
        with SyncSessionLocal() as session:
            course = session.get(Course, course_id)
            return course.enrolled_count

    def run(self) -> dict:
        course_id, instructor_id, student_ids = self.setup()
        job_ids = self.submit_enrollments(course_id, student_ids)
        elapsed = self.wait_for_completion(job_ids, instructor_id)
        enrolled = self.enrolled_count(course_id)

        return {
            "num_students": self.num_students,
            "capacity": self.capacity,
            "enrolled": enrolled,
            "over_enrolled": enrolled > self.capacity,
            "wall_clock_sec": round(elapsed, 3),
            "throughput_jobs_per_sec": round(self.num_students / elapsed, 2),
        }
