"""On-disk layout of a documentation bundle."""
import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

INDEX_FILENAME = "class_lookup.json"
IDENTIFIER_FILENAME = ".last-download-url"
# Scratch directories created by the provisioner inside the root
STAGING_PREFIX = ".staging-"
BACKUP_PREFIX = ".previous-"


class BundleStore:
    """Path conventions for a bundle rooted at one directory."""

    def __init__(self, root: Path):
        """Initialize store.

        Args:
            root: Bundle root directory
        """
        self.root = Path(root)
        self.index_file = self.root / INDEX_FILENAME
        self.identifier_file = self.root / IDENTIFIER_FILENAME

    def has_bundle(self) -> bool:
        """Check whether a usable bundle is installed.

        Returns:
            True if the index file exists
        """
        return self.index_file.is_file()

    def read_identifier(self) -> Optional[str]:
        """Read the identifier of the installed bundle.

        Returns:
            Stripped identifier, or None if absent or unreadable
        """
        try:
            return self.identifier_file.read_text(encoding="utf-8").strip()
        except OSError as e:
            logger.debug(f"No previous bundle identifier at {self.identifier_file}: {e}")
            return None

    def resolve(self, relative_path: str) -> Path:
        """Get absolute path of a documentation body.

        Args:
            relative_path: Path as referenced by an index entry

        Returns:
            Path inside the store root
        """
        return self.root / relative_path.replace("\\", "/")

    def read_document(self, relative_path: str) -> str:
        """Read a documentation body verbatim.

        Raises:
            OSError: If the file cannot be read
            UnicodeDecodeError: If the file is not UTF-8
        """
        # newline="" keeps line endings untouched
        with open(self.resolve(relative_path), encoding="utf-8", newline="") as f:
            return f.read()

    def is_scratch(self, path: Path) -> bool:
        """Check whether a root entry is provisioner scratch space."""
        return path.name.startswith((STAGING_PREFIX, BACKUP_PREFIX))
