"""Shared test configuration."""

import os

# The server module builds its collaborators at import time
os.environ.setdefault("PERSIST_ENABLED", "0")
os.environ.setdefault("AI_SEARCH_DEPTH", "3")
os.environ.setdefault("AI_MOVE_DELAY", "0")
