"""Local file-save capability used by the export pipeline."""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)


class FileSaver(ABC):
    """Writes exported image bytes somewhere the user can get at them."""

    @abstractmethod
    def save(
        self,
        data: bytes,
        suggested_name: str,
        mime_type: str,
        extension: str,
        location: Optional[Union[str, Path]] = None
    ) -> Path:
        """Save exported bytes.

        Args:
            data: Encoded image bytes
            suggested_name: Suggested file name, including extension
            mime_type: MIME type of the data
            extension: File extension without the leading dot
            location: Directory or file path chosen by the user, if any

        Returns:
            Path of the written file
        """
        pass


class DirectoryFileSaver(FileSaver):
    """Saves into a user-chosen location, falling back to a default directory.

    Attributes:
        directory: Default directory for downloads
    """

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory).expanduser()

    def _resolve(self, suggested_name: str, extension: str, location: Optional[Union[str, Path]]) -> Path:
        if not location:
            return self.directory / suggested_name

        target = Path(location).expanduser()
        if target.is_dir() or not target.suffix:
            return target / suggested_name
        if target.suffix.lstrip('.').lower() != extension:
            return target.with_suffix(f".{extension}")
        return target

    def save(
        self,
        data: bytes,
        suggested_name: str,
        mime_type: str,
        extension: str,
        location: Optional[Union[str, Path]] = None
    ) -> Path:
        path = self._resolve(suggested_name, extension, location)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        logger.info(f"Saved {mime_type} download: {path} ({len(data)} bytes)")
        return path
