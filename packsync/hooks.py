"""
Extension points for the pack and unpack pipelines.

Subclass PackHooks and override what you need, then hand the instance to
PackSyncApp. "before" hooks return False to veto the default action.
"""
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .config import PackConfig
    from .models import FileMetadata, PackedManifest


class PackHooks:
    def before_pack(self, config: "PackConfig") -> bool:
        return True

    def after_pack(self, config: "PackConfig", manifest: "PackedManifest") -> None:
        pass

    def before_unpack(self, config: "PackConfig") -> bool:
        return True

    def after_unpack(self, config: "PackConfig", manifest: "PackedManifest") -> None:
        pass

    def before_file(self, path: Path, metadata: "FileMetadata") -> bool:
        """
        Called for every file about to be packed (source path) and for every
        file about to be written during unpack (target path). Never called
        for files the unpack selector already decided to skip.
        """
        return True

    def after_file(self, path: Path, metadata: "FileMetadata") -> None:
        pass
