from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class EditorSettingsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    platform_name: str
    platform_version: str
    h5p_version: str
    fetching_disabled: int
    uuid: str
    site_type: str
    send_usage_statistics: bool
    content_type_cache_refresh_interval: int = Field(description="milliseconds")
    enable_lrs_content_types: bool
    lrs_content_types: list[str]


class EditorSettingsPatchIn(BaseModel):
    fetching_disabled: int | None = None
    uuid: str | None = None
    site_type: str | None = None
    send_usage_statistics: bool | None = None
    content_type_cache_refresh_interval: int | None = None
    enable_lrs_content_types: bool | None = None
