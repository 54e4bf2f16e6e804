import os
import shutil
import logging
from typing import Optional

logger = logging.getLogger(__name__)


class LocalArtifactStore:
    """
    Keeps finished artifacts under `<root>/outputs/<job id>/`.

    The returned reference is an absolute file path; another store (a blob
    bucket, a CDN) only needs to provide the same `put` method.
    """

    def __init__(self, root_dir: str):
        self.root_dir = os.path.abspath(root_dir)

    def job_dir(self, job_id: str) -> str:
        return os.path.join(self.root_dir, "outputs", job_id)

    def put(self, job_id: str, src_path: str, filename: Optional[str] = None) -> str:
        """
        Copies `src_path` into the job's output directory.

        Args:
            job_id (str): Owning job.
            src_path (str): File to store.
            filename (Optional[str]): Stored name; defaults to the source basename.

        Returns:
            str: Reference (absolute path) to the stored artifact.
        """
        dest_dir = self.job_dir(job_id)
        os.makedirs(dest_dir, exist_ok=True)
        dest_path = os.path.join(dest_dir, filename or os.path.basename(src_path))
        shutil.copyfile(src_path, dest_path)
        logger.info(f"📦 Stored artifact: {dest_path}")
        return dest_path
