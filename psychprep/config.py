from pathlib import Path

from pydantic_settings import BaseSettings

PPT_MIME_TYPES = (
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
)


class Settings(BaseSettings):
    database_path: Path = Path("data/psychprep.db")
    upload_dir: Path = Path("uploads")
    log_level: str = "INFO"

    # Upload admission
    max_upload_bytes: int = 10 * 1024 * 1024  # 10MB
    max_extracted_bytes: int = 200 * 1024 * 1024
    allowed_upload_types: tuple[str, ...] = PPT_MIME_TYPES

    # WAT/SRT decks are pre-sampled server-side to this size
    sample_size: int = 60

    # Bootstrap admin account
    admin_username: str = "admin"
    admin_email: str = "admin@example.com"
    admin_password: str = "change-me-admin"

    seed_default_content: bool = True

    class Config:
        env_file = ".env"
        env_prefix = "PSYCHPREP_"

    @property
    def images_dir(self) -> Path:
        return self.upload_dir / "images"

    @property
    def ppt_dir(self) -> Path:
        return self.upload_dir / "ppt"

    @property
    def scratch_dir(self) -> Path:
        return self.upload_dir / "temp"


settings = Settings()
