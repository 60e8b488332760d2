import glob
import logging
import os
from typing import Dict, List, Optional

from pydantic import ValidationError

from .models import SubjectDocument, SubjectEntry

logger = logging.getLogger(__name__)


# --- Service Layer: Content Management ---
class ContentStore:
    """Loads subject documents from JSON files and serves them by path."""

    def __init__(self, directory: str):
        self.directory = directory
        self.subjects: Dict[str, SubjectDocument] = {}
        self.load_all()

    def load_all(self):
        self.subjects = {}
        if not os.path.isdir(self.directory):
            logger.warning(f"Content directory {self.directory} not found. Please add subject files.")
            return

        pattern = os.path.join(self.directory, "**", "*.json")
        for file_path in sorted(glob.glob(pattern, recursive=True)):
            path = os.path.relpath(file_path, self.directory).replace(os.sep, "/")
            try:
                with open(file_path, encoding="utf-8") as f:
                    subject = SubjectDocument.model_validate_json(f.read())
            except (OSError, ValidationError) as e:
                logger.error(f"Skipping {path}: {e}")
                continue
            self.subjects[path] = subject
            logger.info(
                f"Loaded {subject.meta.label} (grade {subject.meta.grade}) "
                f"with {len(subject.lessons)} lessons from {path}"
            )

        if not self.subjects:
            logger.warning(f"No subject files found in {self.directory}.")

    def add_subject(self, path: str, subject: SubjectDocument):
        self.subjects[path] = subject

    def get_subject(self, path: str) -> Optional[SubjectDocument]:
        return self.subjects.get(path)

    def get_subjects(self, grade: Optional[int] = None) -> List[SubjectEntry]:
        entries = [
            SubjectEntry(
                path=path,
                grade=subject.meta.grade,
                subject_id=subject.meta.subject_id,
                label=subject.meta.label,
                lessons=len(subject.lessons),
            )
            for path, subject in self.subjects.items()
            if grade is None or subject.meta.grade == grade
        ]
        entries.sort(key=lambda x: x.label)
        return entries

    def get_grades(self) -> List[int]:
        return sorted({subject.meta.grade for subject in self.subjects.values()})
