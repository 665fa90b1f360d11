from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError

from h5p_server.core.settings_store import SettingsStore

logger = logging.getLogger(__name__)


class CoreApiVersion(BaseModel):
    model_config = ConfigDict(frozen=True)

    major: int = 1
    minor: int = 19


class EditorConfig(BaseModel):
    """Immutable snapshot of the H5P editor configuration.

    Only the fields listed in USER_SETTINGS are persisted; the rest are
    constants of this implementation. Use ``update_editor_config`` to get a
    changed (and saved) snapshot.
    """

    model_config = ConfigDict(frozen=True)

    # Sent to the H5P Hub for statistics; custom deployments may override.
    platform_name: str = "H5P-Server"
    platform_version: str = "0.1"
    # Version of the reference implementation this one imitates.
    h5p_version: str = "1.22"
    core_api_version: CoreApiVersion = CoreApiVersion()

    hub_registration_endpoint: str = "https://api.h5p.org/v1/sites"
    hub_content_types_endpoint: str = "https://api.h5p.org/v1/content-types/"

    # Content types offered only when enable_lrs_content_types is set.
    lrs_content_types: tuple[str, ...] = ("H5P.Questionnaire", "H5P.FreeTextQuestion")

    # User-configurable
    fetching_disabled: int = 0
    uuid: str = ""
    site_type: str = "local"
    send_usage_statistics: bool = False
    content_type_cache_refresh_interval: int = 1000 * 60 * 60 * 24  # ms
    enable_lrs_content_types: bool = True


@dataclass(frozen=True)
class UserSetting:
    key: str
    name: str
    type: Any
    adapter: TypeAdapter = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "adapter", TypeAdapter(self.type))

    def validate(self, value: Any) -> Any:
        return self.adapter.validate_python(value)


# Storage keys are the camelCase names other H5P implementations use.
USER_SETTINGS: tuple[UserSetting, ...] = (
    UserSetting("fetchingDisabled", "fetching_disabled", int),
    UserSetting("uuid", "uuid", str),
    UserSetting("siteType", "site_type", str),
    UserSetting("sendUsageStatistics", "send_usage_statistics", bool),
    UserSetting(
        "contentTypeCacheRefreshInterval", "content_type_cache_refresh_interval", int
    ),
    UserSetting("enableLrsContentTypes", "enable_lrs_content_types", bool),
)

_BY_FIELD = {s.name: s for s in USER_SETTINGS}
_BY_KEY = {s.key: s for s in USER_SETTINGS}


def get_user_setting(name: str) -> UserSetting:
    """Look up a configurable setting by field name or storage key."""
    s = _BY_FIELD.get(name) or _BY_KEY.get(name)
    if s is None:
        raise KeyError(f"{name} is not a user-configurable setting")
    return s


def user_settings_dict(config: EditorConfig) -> dict[str, Any]:
    return {s.key: getattr(config, s.name) for s in USER_SETTINGS}


async def load_editor_config(
    store: SettingsStore, base: EditorConfig | None = None
) -> EditorConfig:
    """Snapshot with every stored setting applied over ``base`` (or the defaults).

    Absent settings keep their default. Stored values that don't match the
    setting's type are ignored.
    """
    config = base or EditorConfig()
    changes: dict[str, Any] = {}
    for s in USER_SETTINGS:
        raw = await store.load(s.key)
        if raw is None:
            continue
        try:
            changes[s.name] = s.validate(raw)
        except ValidationError:
            logger.warning("Ignoring invalid stored value for %s: %r", s.key, raw)
    return config.model_copy(update=changes)


async def save_editor_config(config: EditorConfig, store: SettingsStore) -> None:
    for s in USER_SETTINGS:
        await store.save(s.key, getattr(config, s.name))


async def update_editor_config(
    config: EditorConfig, store: SettingsStore, **changes: Any
) -> EditorConfig:
    """Return a new snapshot with ``changes`` applied and persist those settings.

    Raises KeyError for settings that are not user-configurable and
    pydantic.ValidationError for values of the wrong type.
    """
    validated: dict[str, Any] = {}
    for name, value in changes.items():
        s = get_user_setting(name)
        validated[s.name] = s.validate(value)

    updated = config.model_copy(update=validated)
    for field_name, value in validated.items():
        await store.save(_BY_FIELD[field_name].key, value)
    return updated
