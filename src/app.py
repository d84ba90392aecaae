"""Commerce FastAPI application.

The domain is initialized at module level so uvicorn workers share it.
PROTEAN_ENV selects the ``domain.toml`` overlay (``production`` switches the
database to PostgreSQL).

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

from commerce.api.app import create_app
from commerce.utils.logging import configure_logging

configure_logging()

app = create_app()
