#!/usr/bin/env python3
# backend/run_celery_worker.py
"""
Development Celery runner for the availability maintenance job.

Starts a worker on the maintenance and default queues with an embedded beat
scheduler, so the daily reset / sync fires locally as it does in production.
"""
import os
from pathlib import Path
import subprocess
import sys

# Add backend to path
backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))
os.chdir(backend_dir)

if __name__ == "__main__":
    queues = os.getenv("CELERY_QUEUES") or "celery,maintenance"
    print(f"Starting Celery worker with beat, consuming queues: {queues}")

    cmd = [
        sys.executable,
        "-m",
        "celery",
        "-A",
        "servicebook.tasks.celery_app",
        "worker",
        "--beat",
        "--loglevel=info",
        "--concurrency=1",
        "-Q",
        queues,
    ]

    subprocess.run(cmd)
