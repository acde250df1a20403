"""
Submission archive.

Write-once JSON files for submitted questionnaires. Sessions themselves are
never persisted; only the final responses survive submission.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from questionnaire.utils.helpers import generate_submission_filename

logger = logging.getLogger(__name__)


class SubmissionArchive:
    """
    Stores one JSON file per submitted session.

    Layout:
        outputs/submissions/
            submission_20251126_153045_a3f7e2b9.json
            ...

    Design:
    - Write-once (never overwrite)
    - One file per submission
    """

    def __init__(self, base_dir: str = "outputs/submissions"):
        """
        Initialize archive.

        Args:
            base_dir: Directory for submission files (created if missing)
        """
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"SubmissionArchive initialized: {self.base_dir}")

    def save_submission(
        self,
        session_id: str,
        language: str,
        responses: Dict[str, Dict[str, str]],
        summary: str
    ) -> str:
        """
        Save a submission.

        Args:
            session_id: Session identifier
            language: Session language
            responses: Responses keyed by question id
            summary: Summary text read back to the user

        Returns:
            str: Absolute path to saved file

        Raises:
            FileExistsError: If the generated filename is already taken
        """
        filepath = self.base_dir / generate_submission_filename()

        if filepath.exists():
            raise FileExistsError(f"Submission file already exists: {filepath}")

        payload = {
            'session_id': session_id,
            'language': language,
            'submitted_at': datetime.now(timezone.utc).isoformat(),
            'responses': responses,
            'summary': summary,
        }

        with open(filepath, 'x', encoding='utf-8') as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)

        abs_path = str(filepath.absolute())
        logger.info(f"Saved submission for session {session_id}: {filepath.name}")
        return abs_path

    def load_submission(self, filename: str) -> Optional[Dict[str, Any]]:
        """
        Load a submission by filename.

        Returns:
            dict if the file exists, None otherwise
        """
        filepath = self.base_dir / filename
        if not filepath.exists():
            logger.warning(f"Submission not found: {filename}")
            return None

        with open(filepath, 'r', encoding='utf-8') as f:
            return json.load(f)

    def list_submissions(self) -> List[str]:
        """Submission filenames, oldest first"""
        return sorted(p.name for p in self.base_dir.glob("submission_*.json"))
