import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    database_url: str
    data_root: str
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=os.getenv("DATABASE_URL", "sqlite:///opsdesk.db"),
            data_root=os.getenv("OPSDESK_DATA_ROOT", os.path.join("data", "conversations")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
