"""Shared test setup: keep the logger off the filesystem."""
import os

os.environ.setdefault("LOG_TO_FILE", "false")
