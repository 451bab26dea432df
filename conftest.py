"""Global pytest configuration."""

import os

# Set DATABASE_URL for tests before any imports
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
# Tests never talk to OpenAI; clients fall back to deterministic stubs
os.environ["OPENAI_API_KEY"] = ""
