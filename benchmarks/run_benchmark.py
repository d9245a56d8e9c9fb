"""
CLI entry point for running the enrollment throughput benchmark.

Usage:
    python -m benchmarks.run_benchmark                            # 100 students, 50 seats
    python -m benchmarks.run_benchmark --num-students 500 --capacity 120

Prerequisites:
    API (uvicorn api.main:app) and at least one worker (python -m worker.main) running
"""

import argparse
import json

from benchmarks.throughput import ThroughputBenchmark


def main():
    parser = argparse.ArgumentParser(description="Enrollment Pipeline Throughput Benchmark")
    parser.add_argument(
        "--num-students", type=int, default=100,
        help="Number of enrollment requests to queue (default: 100)",
    )
    parser.add_argument(
        "--capacity", type=int, default=50,
        help="Seats in the benchmark course (default: 50)",
    )
    parser.add_argument(
        "--base-url", type=str, default="http://localhost:8000",
        help="API base URL (default: http://localhost:8000)",
    )
    args = parser.parse_args()

    print("=== Enrollment Throughput Benchmark ===")
    print(f"Students: {args.num_students} | Seats: {args.capacity}\n")

    bench = ThroughputBenchmark(
        base_url=args.base_url, num_students=args.num_students, capacity=args.capacity
    )
    result = bench.run()

    print("=== RESULT ===")
    print(json.dumps(result, indent=2))
    if result["over_enrolled"]:
        print("\n!! Course holds more students than seats")


if __name__ == "__main__":
    main()
