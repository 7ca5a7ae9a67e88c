"""
Output directory preparation.
"""
from pathlib import Path
from typing import List, Union

import structlog

from hls_packager.errors import WorkspaceError
from hls_packager.models import is_owned_artifact

logger = structlog.get_logger()


class OutputWorkspaceManager:
    """Create the output directory and clear a previous run of the same source."""

    def prepare(self, output_dir: Union[str, Path], base_name: str) -> List[Path]:
        """
        Make ``output_dir`` ready for a run of ``base_name``.

        Returns the files removed. Creating the directory is the only fatal
        step; scan and delete failures are logged and the run continues.
        """
        output_path = Path(output_dir)
        try:
            output_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise WorkspaceError(f"Cannot create output directory {output_path}: {e}",
                                 path=str(output_path)) from e

        removed: List[Path] = []
        for entry in self.find_artifacts(output_path, base_name):
            try:
                entry.unlink()
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning("Failed to remove stale artifact", path=str(entry), error=str(e))
                continue
            removed.append(entry)

        if removed:
            logger.info("Removed stale artifacts", base_name=base_name,
                        output_dir=str(output_path), count=len(removed))
        return removed

    def find_artifacts(self, output_dir: Union[str, Path], base_name: str) -> List[Path]:
        """Files in ``output_dir`` that belong to ``base_name``."""
        output_path = Path(output_dir)
        try:
            entries = sorted(output_path.iterdir())
        except FileNotFoundError:
            return []
        except OSError as e:
            logger.warning("Failed to scan output directory", output_dir=str(output_path), error=str(e))
            return []

        return [
            entry for entry in entries
            if is_owned_artifact(entry.name, base_name) and not entry.is_dir()
        ]
