"""
Configuration file for the AI video publishing backend.
Contains all global constants, read from the environment where deployments differ.
"""

import os

# --- Infrastructure ---
PROJECT_ROOT = os.getcwd()
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{os.path.join(PROJECT_ROOT, 'videos.db')}")
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/0")
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")

# --- AI generation service ---
GENERATION_API_URL = os.getenv("GENERATION_API_URL", "http://localhost:8080/api")
GENERATION_TIMEOUT = int(os.getenv("GENERATION_TIMEOUT", "180"))

# --- Asset storage (S3 / MinIO) ---
S3_ENDPOINT_URL = os.getenv("S3_ENDPOINT_URL", "http://127.0.0.1:9000")
S3_ACCESS_KEY = os.getenv("S3_ACCESS_KEY", "minioadmin")
S3_SECRET_KEY = os.getenv("S3_SECRET_KEY", "minioadmin")
S3_REGION = os.getenv("S3_REGION", "us-east-1")
S3_BUCKET = os.getenv("S3_BUCKET", "videos")
S3_PUBLIC_BASE_URL = os.getenv("S3_PUBLIC_BASE_URL", S3_ENDPOINT_URL)

# --- Remote video platform ---
PLATFORM_UPLOAD_URL = os.getenv("PLATFORM_UPLOAD_URL", "https://www.googleapis.com/upload/youtube/v3/videos")
PLATFORM_UPLOAD_TIMEOUT = int(os.getenv("PLATFORM_UPLOAD_TIMEOUT", "600"))

# --- Pipeline constants ---
DAILY_SHORT_GOAL = 3
WEEKLY_LONG_GOAL = 2
AUTOPILOT_SHORT_TOPIC = "a trending topic"
DEFAULT_VIDEO_CATEGORY = "Technology"

# Operations older than this are treated as gone, finished or not.
OPERATION_TTL_SECONDS = 24 * 60 * 60
# A materialization claim older than this is considered abandoned and can be taken over.
MATERIALIZE_STALE_SECONDS = int(os.getenv("MATERIALIZE_STALE_SECONDS", "900"))

POLL_INTERVAL_SECONDS = 5
POLL_MAX_WORKERS = int(os.getenv("POLL_MAX_WORKERS", "8"))

THUMBNAIL_MAX_RETRIES = 3
