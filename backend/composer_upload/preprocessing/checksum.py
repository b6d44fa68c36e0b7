"""Content digest stage.

Stores the hex digest of the file's final bytes in
``file.meta["<algorithm>_checksum"]`` so the storage side can deduplicate.
It is always the last stage of a pipeline: earlier stages may rewrite the
bytes, and the digest must describe what is actually sent.
"""
import hashlib
import logging

from ..files import UploadFile
from .base import PreprocessingStage

logger = logging.getLogger(__name__)


class ChecksumStage(PreprocessingStage):
    id = "checksum"

    def __init__(self, algorithm: str = "sha1", capabilities: dict = None, **options) -> None:
        super().__init__(algorithm=algorithm, capabilities=capabilities or {}, **options)
        self.algorithm = algorithm
        # Hosts without a usable digest primitive opt out with {"can_hash": False}
        self.enabled = (capabilities or {}).get("can_hash", True)

    @property
    def meta_key(self) -> str:
        return f"{self.algorithm}_checksum"

    def applies_to(self, file: UploadFile) -> bool:
        return self.enabled

    async def process(self, file: UploadFile) -> None:
        digest = hashlib.new(self.algorithm, file.data).hexdigest()
        file.meta[self.meta_key] = digest
        logger.debug(f"Computed {self.algorithm} for {file.name}: {digest}")
