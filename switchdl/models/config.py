"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

import re

from pydantic import BaseModel, Field, field_validator

DEFAULT_VERSIONS_URL = (
    "https://raw.githubusercontent.com/blawar/titledb/master/versions.json"
)


class LibraryConfig(BaseModel):
    """A validated configuration model for the application."""

    # Library locations
    roms_path: str = "roms"
    images_path: str = "images"
    title_keys_file: str = "titlekeys.txt"
    metadata_file: str = "library.json"

    # Download settings
    repack: bool = True
    verify: bool = True
    remove_content_after_repack: bool = False
    rom_extension: str = "nsp"

    # Remote sources
    downloader: str = ""
    versions_url: str = DEFAULT_VERSIONS_URL
    icon_url_template: str = ""
    cache_max_age_days: int = 1

    # Internal fields not loaded from INI file
    config_path: str = Field(..., repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("roms_path", "images_path", "metadata_file")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("Path settings cannot be empty.")
        return v

    @field_validator("rom_extension")
    @classmethod
    def validate_extension(cls, v: str) -> str:
        """Accepts 'nsp' or '.nsp' and stores it without the dot."""
        v = v.lstrip(".").lower()
        if not v.isalnum():
            raise ValueError(f"ROM extension must be alphanumeric, but got: '{v}'")
        return v

    @field_validator("downloader")
    @classmethod
    def validate_downloader(cls, v: str) -> str:
        if v and not re.match(r"^[\w.]+:[\w.]+$", v):
            raise ValueError(
                "Downloader must be given as 'package.module:ClassName'."
            )
        return v

    @field_validator("versions_url")
    @classmethod
    def validate_versions_url(cls, v: str) -> str:
        if v and not v.startswith(("http://", "https://")):
            raise ValueError("Versions URL must be an http(s) URL.")
        return v

    @field_validator("icon_url_template")
    @classmethod
    def validate_icon_template(cls, v: str) -> str:
        if v and "{title_id}" not in v:
            raise ValueError("Icon URL template must contain {title_id}.")
        return v

    @field_validator("cache_max_age_days")
    @classmethod
    def validate_cache_age(cls, v: int) -> int:
        if v < 0 or v > 30:
            raise ValueError("Cache max age must be between 0 and 30 days.")
        return v

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path"}
        return {key for key in cls.model_fields if key not in internal_fields}
