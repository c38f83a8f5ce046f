import os
from typing import List
from pydantic import BaseModel
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 3000
    night_seconds: float = 60
    day_seconds: float = 90
    min_players: int = 3
    max_message_bytes: int = 16384
    empty_room_ttl_seconds: float = 600
    static_dir: str = "public"
    allowed_origins: List[str] = ["*"]
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        origins = [o.strip() for o in os.getenv("ALLOWED_ORIGINS", "*").split(",") if o.strip()]
        return cls(
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "3000")),
            night_seconds=float(os.getenv("NIGHT_SECONDS", "60")),
            day_seconds=float(os.getenv("DAY_SECONDS", "90")),
            min_players=int(os.getenv("MIN_PLAYERS", "3")),
            max_message_bytes=int(os.getenv("MAX_MESSAGE_BYTES", "16384")),
            empty_room_ttl_seconds=float(os.getenv("EMPTY_ROOM_TTL_SECONDS", "600")),
            static_dir=os.getenv("STATIC_DIR", "public"),
            allowed_origins=origins or ["*"],
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
