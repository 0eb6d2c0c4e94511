from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    # App
    APP_NAME: str = "Receipt Scanner"
    DEBUG: bool = True

    # CORS
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000"]

    # OCR
    TESSERACT_CMD: str = "tesseract"
    OCR_LANG: str = "eng"
    OCR_OEM: int = 3
    OCR_PSM: int = 6
    OCR_TIMEOUT_SECONDS: float = 0  # 0 disables the tesseract timeout
    OCR_CHAR_WHITELIST: str = (
        "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789.$₹€£/-:,&'"
    )
    PROGRESS_BUFFER: int = 16

    # Uploads
    MAX_UPLOAD_MB: int = 10

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
