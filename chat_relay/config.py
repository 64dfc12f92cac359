import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from chat_relay.errors import ConfigurationError

load_dotenv()

DEFAULT_UPLOAD_DIR = Path(tempfile.gettempdir()) / "chat_relay_uploads"


@dataclass(frozen=True)
class Settings:
    openai_api_key: str = ""
    upstream_base_url: str = "https://api.openai.com/v1"
    chat_model: str = "gpt-3.5-turbo"
    image_size: str = "512x512"
    upstream_timeout_s: float = 60.0
    host: str = "0.0.0.0"
    port: int = 10000
    allowed_origin: str = "*"
    upload_dir: Path = DEFAULT_UPLOAD_DIR
    max_upload_bytes: int = 10 * 1024 * 1024
    log_level: str = "INFO"
    log_json: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY", ""),
            upstream_base_url=os.getenv("UPSTREAM_BASE_URL", "https://api.openai.com/v1"),
            chat_model=os.getenv("CHAT_MODEL", "gpt-3.5-turbo"),
            image_size=os.getenv("IMAGE_SIZE", "512x512"),
            upstream_timeout_s=float(os.getenv("UPSTREAM_TIMEOUT_S", "60")),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "10000")),
            allowed_origin=os.getenv("ALLOWED_ORIGIN", "*"),
            upload_dir=Path(os.getenv("UPLOAD_DIR", str(DEFAULT_UPLOAD_DIR))),
            max_upload_bytes=int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024))),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_json=os.getenv("LOG_JSON", "true").lower() == "true",
        )

    def require_credential(self) -> None:
        if not self.openai_api_key:
            raise ConfigurationError("OPENAI_API_KEY is not set; refusing to start the relay")

    @property
    def allowed_origins(self) -> list[str]:
        return [origin.strip() for origin in self.allowed_origin.split(",") if origin.strip()]
