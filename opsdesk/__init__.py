from opsdesk.db import init_db
from opsdesk.server import create_app

__all__ = ["create_app", "init_db"]
