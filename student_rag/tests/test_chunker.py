"""Tests for text and tabular chunking."""

from student_rag.rag.chunker import (
    chunk_table,
    chunk_text_document,
    find_student_id,
    make_chunks,
    split_paragraphs,
    window_sentences,
)

ROWS = [
    {"Student ID": "1001", "Name": "Ana", "Avg Quiz Score": "85", "Attendance": "95%", "Safety Violations": "0"},
    {"Student ID": "1002", "Name": "Ben", "Avg Quiz Score": "72", "Attendance": "", "Safety Violations": "2"},
    {"Student ID": "", "Name": "Cy", "Avg Quiz Score": "90", "Attendance": "88%", "Safety Violations": "1"},
]


class TestTextChunking:
    def test_split_paragraphs(self):
        assert split_paragraphs("First.\n\n  \nSecond.\n") == ["First.", "Second."]
        assert split_paragraphs("") == []

    def test_short_paragraph_is_one_window(self):
        assert window_sentences("One. Two. Three.", max_sentences=6) == ["One. Two. Three."]

    def test_windows_overlap(self):
        paragraph = "S1. S2. S3. S4. S5."
        assert window_sentences(paragraph, max_sentences=3, overlap=1) == ["S1. S2. S3.", "S3. S4. S5."]

    def test_make_chunks_spans_paragraphs(self):
        assert make_chunks("A. B.\n\nC.") == ["A. B.", "C."]

    def test_document_metadata(self):
        chunks = chunk_text_document("Intro text.\n\nMore text here.", "notes.txt", ".txt")
        assert [c.content for c in chunks] == ["Intro text.", "More text here."]
        first = chunks[0].metadata
        assert first["type"] == "text_document"
        assert first["filename"] == "notes.txt"
        assert first["chunk_index"] == 0
        assert first["chunk_count"] == 2
        assert first["content_length"] == len("Intro text.")
        assert chunks[1].metadata["chunk_index"] == 1

    def test_pdf_type(self):
        chunks = chunk_text_document("Page text.", "report.pdf", ".pdf")
        assert chunks[0].metadata["type"] == "pdf_document"


class TestFindStudentId:
    def test_column_priority(self):
        assert find_student_id({"id": "7", "Student ID": "1001"}) == "1001"
        assert find_student_id({"StudentID": "42"}) == "42"

    def test_blank_values_are_skipped(self):
        assert find_student_id({"Student ID": " ", "ID": "9"}) == "9"
        assert find_student_id({"Name": "Ana"}) is None


class TestChunkTable:
    def test_summary_plus_one_chunk_per_row(self):
        chunks = chunk_table(ROWS, "grades.csv")
        assert len(chunks) == len(ROWS) + 1

        summary = chunks[0]
        assert summary.metadata["type"] == "summary"
        assert summary.metadata["total_records"] == 3
        assert summary.metadata["columns"] == list(ROWS[0])
        assert "Total Records: 3" in summary.content
        assert "Type: Student Data CSV" in summary.content
        assert "Contains student information including: Student ID, Avg Quiz Score, Attendance" in summary.content

    def test_row_content_duplicates_tagged_fields(self):
        record = chunk_table(ROWS, "grades.csv")[1]
        lines = record.content.splitlines()
        assert lines[0] == "Student Record from grades.csv:"
        assert lines[1] == "Student ID: 1001"
        for expected in (
            "Avg Quiz Score: 85",
            "Quiz performance: 85",
            "Test score: 85",
            "Attendance rate: 95%",
            "Presence record: 95%",
            "Safety record: 0",
            "Violation count: 0",
        ):
            assert expected in lines
        assert lines[-2] == "This record contains information for student 1001."
        assert lines[-1] == "Student 1001 data includes performance metrics and attendance information."

    def test_empty_fields_are_omitted(self):
        record = chunk_table(ROWS, "grades.csv")[2]
        assert "Attendance:" not in record.content
        assert "Attendance rate" not in record.content

    def test_row_metadata(self):
        chunks = chunk_table(ROWS, "grades.csv")
        meta = chunks[1].metadata
        assert meta["type"] == "student_record"
        assert meta["student_id"] == "1001"
        assert meta["record_index"] == 1
        assert meta["chunk_index"] == 1
        assert meta["has_quiz_score"] and meta["has_attendance"] and meta["has_safety_violations"]
        assert chunks[3].metadata["record_index"] == 3

    def test_row_without_id(self):
        record = chunk_table(ROWS, "grades.csv")[3]
        assert record.metadata["student_id"] is None
        assert "Student ID:" not in record.content
        assert "This record contains information" not in record.content

    def test_flags_follow_headers(self):
        chunks = chunk_table([{"id": "5", "Grade": "B"}], "plain.csv")
        meta = chunks[1].metadata
        assert not (meta["has_quiz_score"] or meta["has_attendance"] or meta["has_safety_violations"])

    def test_no_rows(self):
        assert chunk_table([], "empty.csv") == []
