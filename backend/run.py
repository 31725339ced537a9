#!/usr/bin/env python3
# backend/run.py
"""
Development server runner.

Uses the local SQLite database from settings; tables are created on startup.
"""
from pathlib import Path
import sys

# Add backend to path
backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))

import uvicorn

if __name__ == "__main__":
    print("Starting servicebook API at http://localhost:8000 (docs at /docs)")
    uvicorn.run("servicebook.main:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
