"""Tests for loading subject documents from disk."""

import json

from happylearners.content import ContentStore
from happylearners.models import UnsupportedQuestion


def write_subject(directory, name, grade, subject_id, label, lessons=None):
    document = {
        "meta": {"grade": grade, "subjectId": subject_id, "label": label},
        "lessons": lessons or [],
    }
    path = directory / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(document), encoding="utf-8")
    return path


class TestContentStore:
    def test_loads_documents_by_relative_path(self, tmp_path, subject_data):
        (tmp_path / "grade2").mkdir()
        (tmp_path / "grade2" / "science.json").write_text(json.dumps(subject_data), encoding="utf-8")

        store = ContentStore(str(tmp_path))
        subject = store.get_subject("grade2/science.json")

        assert subject is not None
        assert subject.meta.subject_id == "science"
        assert len(subject.lessons) == 3

    def test_unknown_path_is_none(self, tmp_path):
        assert ContentStore(str(tmp_path)).get_subject("nope.json") is None

    def test_malformed_document_is_skipped(self, tmp_path):
        write_subject(tmp_path, "math.json", 1, "math", "Math")
        write_subject(
            tmp_path,
            "broken.json",
            1,
            "broken",
            "Broken",
            lessons=[{"id": "l1", "title": "L1", "quiz": [{"type": "true_false", "question": "?"}]}],
        )
        (tmp_path / "garbage.json").write_text("{", encoding="utf-8")

        store = ContentStore(str(tmp_path))
        assert set(store.subjects) == {"math.json"}

    def test_unsupported_question_kind_still_loads(self, tmp_path):
        write_subject(
            tmp_path,
            "art.json",
            1,
            "art",
            "Art",
            lessons=[{"id": 1, "title": "Colors", "quiz": [{"type": "paint", "question": "Paint!"}]}],
        )
        lesson = ContentStore(str(tmp_path)).get_subject("art.json").lessons[0]

        assert lesson.id == "1"
        assert isinstance(lesson.quiz[0], UnsupportedQuestion)

    def test_subjects_listed_by_grade_and_label(self, tmp_path):
        write_subject(tmp_path, "g1/reading.json", 1, "reading", "Reading")
        write_subject(tmp_path, "g1/art.json", 1, "art", "Art")
        write_subject(tmp_path, "g2/math.json", 2, "math", "Math")

        store = ContentStore(str(tmp_path))

        assert [entry.label for entry in store.get_subjects(1)] == ["Art", "Reading"]
        assert [entry.path for entry in store.get_subjects(2)] == ["g2/math.json"]
        assert len(store.get_subjects()) == 3
        assert store.get_grades() == [1, 2]

    def test_missing_directory_loads_nothing(self, tmp_path):
        store = ContentStore(str(tmp_path / "absent"))
        assert store.subjects == {}
        assert store.get_grades() == []

    def test_numeric_ordering_and_matching_content_loads(self, tmp_path):
        write_subject(
            tmp_path,
            "numbers.json",
            1,
            "math",
            "Math",
            lessons=[
                {
                    "id": "sums",
                    "title": "Sums",
                    "quiz": [
                        {"type": "ordering", "question": "Sort.", "items": [3, 1, 2], "answerOrder": [1, 2, 3]},
                        {"type": "drag_match", "question": "Match.", "pairs": [{"left": 2, "right": "1+1"}]},
                    ],
                }
            ],
        )
        subject = ContentStore(str(tmp_path)).get_subject("numbers.json")

        assert subject is not None
        ordering, matching = subject.lessons[0].quiz
        assert ordering.answer_order == ["1", "2", "3"]
        assert matching.pairs[0].left == "2"
