import os
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    whatsapp_number: str = "628115554155"
    idr_rate: Decimal = Decimal("15000")
    admin_username: str = "admin"
    admin_password: str = "admin"
    storage_path: Optional[str] = None
    log_level: str = "INFO"
    api_url: str = "http://127.0.0.1:8085"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            whatsapp_number=os.getenv("STOREFRONT_WHATSAPP_NUMBER", cls.whatsapp_number),
            idr_rate=Decimal(os.getenv("STOREFRONT_IDR_RATE", str(cls.idr_rate))),
            admin_username=os.getenv("STOREFRONT_ADMIN_USERNAME", cls.admin_username),
            admin_password=os.getenv("STOREFRONT_ADMIN_PASSWORD", cls.admin_password),
            storage_path=os.getenv("STOREFRONT_STORAGE_PATH") or None,
            log_level=os.getenv("STOREFRONT_LOG_LEVEL", cls.log_level).upper(),
            api_url=os.getenv("STOREFRONT_API_URL", cls.api_url),
        )


settings = Settings.from_env()
