from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, HttpUrl
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    github_base_url: HttpUrl = Field(
        default="https://api.github.com", alias="GITHUB_BASE_URL"
    )
    github_proxy: Optional[str] = Field(default=None, alias="GITHUB_PROXY")
    http_timeout_seconds: float = Field(default=20.0, alias="HTTP_TIMEOUT_SECONDS")
    cache_ttl_seconds: int = Field(default=3600, alias="CACHE_TTL_SECONDS")
    cors_origins: list[str] = Field(default=["*"], alias="CORS_ORIGINS")

    storage_path: Path = Field(
        default=Path("docshelf-data.json"), alias="DOCSHELF_STORAGE_PATH"
    )
    # same key the browser build used, so exported stores load unchanged
    storage_key: str = Field(default="pdf_lib_storage_final", alias="DOCSHELF_STORAGE_KEY")

    debounce_ms: int = Field(default=500, ge=0, alias="DEBOUNCE_MS")
    suggestion_page_size: int = Field(default=30, ge=1, le=100, alias="SUGGESTION_PAGE_SIZE")
    target_extension: str = Field(default=".pdf", alias="TARGET_EXTENSION")
    untitled_name: str = Field(default="Untitled document", alias="UNTITLED_NAME")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        populate_by_name = True
        extra = "ignore"  # ignore unrelated env vars to avoid validation errors

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000


@lru_cache
def get_settings() -> Settings:
    return Settings()
