from __future__ import annotations

from fastapi import APIRouter, Depends

from h5p_server.api.deps import get_editor_config, get_settings_store
from h5p_server.core.editor_config import EditorConfig, update_editor_config
from h5p_server.core.settings_store import SettingsStore
from h5p_server.schemas.settings import EditorSettingsOut, EditorSettingsPatchIn

router = APIRouter(prefix="/v1", tags=["settings"])


@router.get("/settings", response_model=EditorSettingsOut)
async def get_settings(config: EditorConfig = Depends(get_editor_config)):
    return EditorSettingsOut.model_validate(config)


@router.patch("/settings", response_model=EditorSettingsOut)
async def patch_settings(
    payload: EditorSettingsPatchIn,
    config: EditorConfig = Depends(get_editor_config),
    store: SettingsStore = Depends(get_settings_store),
):
    changes = payload.model_dump(exclude_none=True)
    updated = await update_editor_config(config, store, **changes)
    return EditorSettingsOut.model_validate(updated)
