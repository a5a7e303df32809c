"""
ExLab - Application Configuration
Pydantic Settings with environment variable support
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""
    
    model_config = SettingsConfigDict(
        env_prefix="EXLAB_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )
    
    # ==========================================================================
    # Application
    # ==========================================================================
    app_name: str = "ExLab"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "production"
    
    # ==========================================================================
    # Server
    # ==========================================================================
    host: str = "0.0.0.0"
    port: int = 8000
    
    # ==========================================================================
    # Logging
    # ==========================================================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "console"] = "json"
    
    # ==========================================================================
    # Docker
    # ==========================================================================
    docker_url: Optional[str] = None  # falls back to DOCKER_HOST / local socket
    lab_network_prefix: str = "exlab"
    dns_octet: int = Field(default=2, ge=2, le=254)
    
    @field_validator("lab_network_prefix")
    @classmethod
    def check_network_prefix(cls, v: str) -> str:
        # bridge names are limited to 15 chars, 6 are used for the lab suffix
        if not v or len(v) > 8:
            raise ValueError("lab_network_prefix must be 1-8 characters")
        return v
    
    # ==========================================================================
    # VirtualBox
    # ==========================================================================
    vbox_manage_binary: str = "VBoxManage"
    vm_library_dir: Path = Path("/opt/exlab/vms")
    
    # ==========================================================================
    # Exercise catalog
    # ==========================================================================
    catalog_url: Optional[str] = None
    catalog_timeout: float = 10.0
    
    # ==========================================================================
    # Event
    # ==========================================================================
    event_tag: Optional[str] = None  # no event store when unset
    event_name: Optional[str] = None
    
    # ==========================================================================
    # Labs
    # ==========================================================================
    max_labs: int = 20
    flag_prefix: str = "EXL{"
    flag_suffix: str = "}"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
