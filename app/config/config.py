from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    host: str = "0.0.0.0"
    port: int = 3000
    max_upload_size: int = 20 * 1024 * 1024  # 20MB

    # 随机图片根目录，默认为工作目录下的 images/
    image_dir: Path = Field(default_factory=lambda: Path.cwd() / "images")

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
