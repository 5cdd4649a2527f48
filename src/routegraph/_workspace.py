"""Temporary workspaces that are deleted when released."""

import logging
import shutil
import tempfile
from pathlib import Path

from ._try import try_call
from ._value import Value

logger = logging.getLogger(__name__)


def delete_directory_and_content(directory: Path) -> None:
    """Delete a directory tree bottom-up.

    Symbolic links are removed without following them, so nothing outside
    ``directory`` is ever deleted. The first entry that cannot be visited or
    removed stops the deletion and its OSError propagates. A missing
    directory is ignored.
    """
    if directory.is_symlink():
        directory.unlink()
        return
    if not directory.exists():
        logger.debug("Nothing to delete at %s", directory)
        return
    logger.debug("Deleting %s", directory)
    shutil.rmtree(directory)


def create_workspace(prefix: str = "artifactStore-") -> Value[Path]:
    """Allocate a fresh temporary directory.

    Returns:
        A Value whose release deletes the directory and everything in it.

    Raises:
        ResolutionFailure: If the directory could not be created.

    """
    workspace = Path(try_call(tempfile.mkdtemp, prefix=prefix))
    logger.debug("Created workspace %s", workspace)
    return Value.of(workspace, delete_directory_and_content)
