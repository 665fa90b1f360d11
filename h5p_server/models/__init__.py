from h5p_server.models.base import Base
from h5p_server.models.editor_setting import EditorSetting
from h5p_server.models.installed_library import InstalledLibraryRow


__all__ = [
    "Base",
    "EditorSetting",
    "InstalledLibraryRow",
]
