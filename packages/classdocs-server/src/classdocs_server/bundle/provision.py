"""Provisioning: bring the bundle store up to date with the configured source."""
import io
import logging
import shutil
import tempfile
import threading
import zipfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional

from classdocs_shared.schemas import ProvisionAction, ProvisionReport, ServerSettings

from ..lookup.index import LookupIndex
from .errors import (
    AcquisitionError,
    ExtractionFailed,
    InvalidBundle,
    LookupIndexError,
    NoDocumentationAvailable,
    ProvisionInProgress,
)
from .fetch import fetch_archive
from .store import (
    BACKUP_PREFIX,
    IDENTIFIER_FILENAME,
    INDEX_FILENAME,
    STAGING_PREFIX,
    BundleStore,
)

logger = logging.getLogger(__name__)

Fetcher = Callable[[str, float], bytes]


class Provisioner:
    """Only writer of the bundle store.

    A run checks whether the configured identifier differs from the
    installed one, downloads and stages the new archive, validates it and
    swaps it into place. The identifier travels with the staged bundle, so
    it never describes content that is not installed.
    """

    def __init__(
        self,
        settings: ServerSettings,
        store: Optional[BundleStore] = None,
        fetch: Optional[Fetcher] = None,
    ):
        """Initialize provisioner.

        Args:
            settings: Server settings (source, timeout, docs dir)
            store: Bundle store, defaults to one at settings.docs_dir
            fetch: Archive fetcher, defaults to fetch_archive
        """
        self.settings = settings
        self.store = store or BundleStore(settings.docs_dir)
        self.fetch = fetch or fetch_archive
        self._lock = threading.Lock()

    def provision(self) -> ProvisionReport:
        """Run provisioning once.

        Returns:
            Report describing how the store reached the Ready state

        Raises:
            ProvisionInProgress: If another run is active
            AcquisitionError: If it fails and no usable bundle exists
        """
        if not self._lock.acquire(blocking=False):
            raise ProvisionInProgress("Provisioning is already running")
        try:
            return self._run()
        finally:
            self._lock.release()

    def _run(self) -> ProvisionReport:
        source = self.settings.docs_url
        if source is None:
            if self.store.has_bundle():
                logger.info(f"No DOCS_URL configured, using bundle in {self.store.root}")
                return self._report(ProvisionAction.LOCAL)
            raise NoDocumentationAvailable(
                f"No DOCS_URL configured and no documentation in {self.store.root}"
            )

        if not self.has_changed(source):
            logger.info("Skipping download, bundle identifier unchanged")
            return self._report(ProvisionAction.UNCHANGED, identifier=source)

        logger.info("Bundle identifier changed, downloading new documentation")
        try:
            archive = self.fetch(source, self.settings.fetch_timeout)
            entry_count = self.install(archive, source)
        except AcquisitionError as e:
            return self._fall_back(e)

        logger.info(f"Documentation installed in {self.store.root} ({entry_count} classes)")
        return self._report(
            ProvisionAction.FETCHED, identifier=source, entry_count=entry_count
        )

    def has_changed(self, source: str) -> bool:
        """Check if the source differs from the installed bundle.

        Args:
            source: Configured bundle identifier

        Returns:
            True if a download is needed
        """
        stored = self.store.read_identifier()
        if stored is None:
            return True
        if stored != source.strip():
            return True
        if not self.store.has_bundle():
            logger.warning(
                f"Identifier unchanged but {INDEX_FILENAME} is missing, downloading again"
            )
            return True
        return False

    def install(self, archive: bytes, identifier: str) -> int:
        """Stage, validate and swap a bundle archive into the store.

        Args:
            archive: Zip archive bytes
            identifier: Identifier to record with the bundle

        Returns:
            Number of classes in the installed index

        Raises:
            ExtractionFailed: If the archive cannot be materialized
            InvalidBundle: If the staged bundle fails validation
        """
        root = self.store.root
        try:
            root.mkdir(parents=True, exist_ok=True)
            self._remove_leftovers()
            staging = Path(tempfile.mkdtemp(prefix=STAGING_PREFIX, dir=root))
        except OSError as e:
            raise ExtractionFailed(f"Cannot prepare {root}: {e}") from e

        try:
            bundle_dir = self._extract(archive, staging)
            entry_count = self._validate(bundle_dir)
            try:
                (bundle_dir / IDENTIFIER_FILENAME).write_text(
                    identifier.strip(), encoding="utf-8"
                )
            except OSError as e:
                raise ExtractionFailed(f"Cannot record bundle identifier: {e}") from e
            self._swap(bundle_dir)
        finally:
            shutil.rmtree(staging, ignore_errors=True)

        return entry_count

    def _extract(self, archive: bytes, staging: Path) -> Path:
        """Extract the archive into staging and locate the bundle root."""
        logger.info(f"Extracting archive ({len(archive)} bytes) into {staging}")
        staging_root = staging.resolve()
        try:
            with zipfile.ZipFile(io.BytesIO(archive)) as zf:
                for member in zf.namelist():
                    target = (staging_root / member).resolve()
                    if not target.is_relative_to(staging_root):
                        raise ExtractionFailed(
                            f"Archive member escapes the bundle: {member!r}"
                        )
                zf.extractall(staging)
        except ExtractionFailed:
            raise
        except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError, EOFError, RuntimeError) as e:
            raise ExtractionFailed(f"Failed to extract archive: {e}") from e

        if (staging / INDEX_FILENAME).exists():
            return staging

        # Archives built from a folder often wrap everything in it
        children = list(staging.iterdir())
        if len(children) == 1 and (children[0] / INDEX_FILENAME).exists():
            logger.debug(f"Unwrapping top-level directory {children[0].name}")
            return children[0]
        return staging

    def _validate(self, bundle_dir: Path) -> int:
        """Check the staged bundle has a readable index and all its files."""
        staged = BundleStore(bundle_dir)
        if not staged.index_file.is_file():
            raise InvalidBundle(f"Extracted documentation is missing {INDEX_FILENAME}")

        try:
            index = LookupIndex.from_file(staged.index_file)
        except LookupIndexError as e:
            raise InvalidBundle(f"Extracted {INDEX_FILENAME} is invalid: {e}") from e

        missing = [
            entry.relative_path
            for entry in index.entries()
            if not staged.resolve(entry.relative_path).is_file()
        ]
        if missing:
            raise InvalidBundle(
                f"{len(missing)} indexed documentation files are missing, "
                f"e.g. {missing[:5]}"
            )

        logger.debug(f"Bundle validation passed: {len(index)} classes")
        return len(index)

    def _swap(self, bundle_dir: Path) -> None:
        """Replace the root's entries with the staged ones, rolling back on error."""
        root = self.store.root
        try:
            backup = Path(tempfile.mkdtemp(prefix=BACKUP_PREFIX, dir=root))
        except OSError as e:
            raise ExtractionFailed(f"Cannot create backup directory in {root}: {e}") from e

        moved_out: List[str] = []
        moved_in: List[str] = []
        try:
            for entry in list(root.iterdir()):
                if self.store.is_scratch(entry):
                    continue
                entry.rename(backup / entry.name)
                moved_out.append(entry.name)
            for entry in list(bundle_dir.iterdir()):
                entry.rename(root / entry.name)
                moved_in.append(entry.name)
        except OSError as e:
            logger.error(f"Swapping in new documentation failed, rolling back: {e}")
            if not self._roll_back(backup, bundle_dir, moved_out, moved_in):
                raise ExtractionFailed(
                    f"Swap failed and rollback was incomplete; previous files are "
                    f"kept in {backup}: {e}"
                ) from e
            shutil.rmtree(backup, ignore_errors=True)
            raise ExtractionFailed(f"Failed to install documentation: {e}") from e

        shutil.rmtree(backup, ignore_errors=True)

    def _roll_back(
        self,
        backup: Path,
        bundle_dir: Path,
        moved_out: List[str],
        moved_in: List[str],
    ) -> bool:
        root = self.store.root
        ok = True
        for name in reversed(moved_in):
            try:
                (root / name).rename(bundle_dir / name)
            except OSError as e:
                logger.error(f"Rollback could not remove new entry {name}: {e}")
                ok = False
        for name in reversed(moved_out):
            try:
                (backup / name).rename(root / name)
            except OSError as e:
                logger.error(f"Rollback could not restore {name}: {e}")
                ok = False
        return ok

    def _remove_leftovers(self) -> None:
        """Delete scratch directories left behind by an interrupted run."""
        for entry in self.store.root.iterdir():
            if self.store.is_scratch(entry) and entry.is_dir():
                logger.warning(f"Removing leftover directory {entry}")
                shutil.rmtree(entry, ignore_errors=True)

    def _fall_back(self, error: AcquisitionError) -> ProvisionReport:
        if not self.store.has_bundle():
            logger.error(f"Failed to download and install documentation: {error}")
            raise error

        logger.warning(
            f"Documentation refresh failed, serving previous bundle "
            f"from {self.store.root}: {error}"
        )
        return self._report(
            ProvisionAction.STALE,
            identifier=self.store.read_identifier(),
            error=str(error),
        )

    def _report(self, action: ProvisionAction, **fields) -> ProvisionReport:
        return ProvisionReport(
            action=action,
            docs_dir=str(self.store.root),
            completed_at=datetime.now(timezone.utc).isoformat(),
            **fields,
        )
