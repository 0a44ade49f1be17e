import logging
from pathlib import Path
from typing import List, Optional, Sequence

logger = logging.getLogger(__name__)

class ImageStore:
    """Base64 image payloads kept on disk, one file per message uuid."""

    def __init__(self, base_path):
        path = Path(base_path)
        if not path.is_dir():
            logger.error("Image directory %s does not exist", base_path)
            raise RuntimeError(f"IMAGES_BASE_PATH directory does not exist, the given path is {base_path}.")
        self.base_path = path.resolve()

    def file_path(self, uuid: str) -> Path:
        path = (self.base_path / uuid).resolve()
        if path.parent != self.base_path:
            raise ValueError(f"invalid image name {uuid!r}")
        return path

    def save(self, uuid: str, image: str):
        self.file_path(uuid).write_text(image)

    def get(self, uuid: str) -> Optional[str]:
        try:
            return self.file_path(uuid).read_text()
        except FileNotFoundError:
            return None

    def get_many(self, uuids: Sequence[Optional[str]]) -> List[Optional[str]]:
        # a None entry means "no image", so its file is never read
        return [self.get(uuid) if uuid is not None else None for uuid in uuids]

    def remove(self, uuid: str) -> bool:
        try:
            self.file_path(uuid).unlink()
        except FileNotFoundError:
            return False
        return True

    def clear(self):
        removed = 0
        for entry in self.base_path.iterdir():
            if entry.is_file():
                entry.unlink()
                removed += 1
        logger.info("Removed %d images", removed)
