"""
Chunking functionality for ingestion.

Free text is split into paragraphs and sentence windows with overlap. Tabular
rows become one summary snippet plus one snippet per row, with extra tagged
lines for recognised field categories so lexical lookups find them.
"""

import re
from collections.abc import Mapping, Sequence
from typing import Any, NamedTuple

ID_COLUMNS = ("Student ID", "student_id", "StudentID", "ID", "id")
SUMMARY_KEYWORDS = ("student", "id", "score", "attendance", "grade")


class ChunkDraft(NamedTuple):
    """Snippet content and metadata prior to embedding."""

    content: str
    metadata: dict[str, Any]


def split_paragraphs(text: str) -> list[str]:
    """
    Split text into paragraphs using blank line separation.

    Args:
        text: Input text to split into paragraphs

    Returns:
        List of paragraph strings, with empty paragraphs filtered out
    """
    if not text or not isinstance(text, str):
        return []
    return [p.strip() for p in re.split(r"\n\s*\n", text) if p.strip()]


def window_sentences(paragraph: str, max_sentences: int = 6, overlap: int = 1) -> list[str]:
    """
    Split a paragraph into sentence windows with overlap.

    Args:
        paragraph: Input paragraph text to split into sentences
        max_sentences: Maximum number of sentences per window (default: 6)
        overlap: Number of sentences to overlap between windows (default: 1)

    Returns:
        List of sentence windows (strings)
    """
    if not paragraph or not isinstance(paragraph, str) or max_sentences <= 0:
        return []

    sentences = [s.strip() for s in re.split(r"(?<=[.!?])\s+", paragraph) if s.strip()]
    if not sentences:
        return []
    if len(sentences) <= max_sentences:
        return [paragraph]

    overlap = max(0, min(overlap, max_sentences - 1))
    windows = []
    for i in range(0, len(sentences), max_sentences - overlap):
        windows.append(" ".join(sentences[i : i + max_sentences]))
        if i + max_sentences >= len(sentences):
            break
    return windows


def make_chunks(text: str, max_sent: int = 6, overlap: int = 1) -> list[str]:
    """Paragraph splitting followed by sentence windowing."""
    chunks = []
    for paragraph in split_paragraphs(text):
        chunks.extend(window_sentences(paragraph, max_sent, overlap))
    return chunks


def chunk_text_document(
    text: str,
    filename: str,
    file_type: str,
    max_sent: int = 6,
    overlap: int = 1,
) -> list[ChunkDraft]:
    """
    Chunk an uploaded text or PDF document.

    Each chunk carries provenance: filename, file type, chunk index and count.
    """
    pieces = make_chunks(text, max_sent, overlap)
    doc_type = "pdf_document" if file_type == ".pdf" else "text_document"
    return [
        ChunkDraft(
            content=piece,
            metadata={
                "type": doc_type,
                "filename": filename,
                "file_type": file_type,
                "chunk_index": index,
                "chunk_count": len(pieces),
                "content_length": len(piece),
            },
        )
        for index, piece in enumerate(pieces)
    ]


def _has_value(value: Any) -> bool:
    return value is not None and str(value).strip() != ""


def _is_quiz_score(header: str) -> bool:
    h = header.lower()
    return "quiz" in h and "score" in h


def _is_attendance(header: str) -> bool:
    return "attendance" in header.lower()


def _is_safety_violation(header: str) -> bool:
    h = header.lower()
    return "safety" in h and "violation" in h


def find_student_id(row: Mapping[str, Any]) -> str | None:
    """First non-empty value among the common ID column names."""
    for column in ID_COLUMNS:
        if _has_value(row.get(column)):
            return str(row[column])
    return None


def _summary_chunk(headers: list[str], row_count: int, filename: str) -> ChunkDraft:
    highlighted = [h for h in headers if any(word in h.lower() for word in SUMMARY_KEYWORDS)]
    content = "\n".join(
        [
            f"Document: {filename}",
            "Type: Student Data CSV",
            f"Columns: {', '.join(headers)}",
            f"Total Records: {row_count}",
            f"Contains student information including: {', '.join(highlighted)}",
        ]
    )
    metadata = {
        "type": "summary",
        "filename": filename,
        "chunk_index": 0,
        "total_records": row_count,
        "columns": headers,
    }
    return ChunkDraft(content, metadata)


def _row_chunk(row: Mapping[str, Any], headers: list[str], index: int, filename: str) -> ChunkDraft:
    student_id = find_student_id(row)

    lines = [f"Student Record from {filename}:"]
    if student_id:
        lines.append(f"Student ID: {student_id}")

    for header in headers:
        value = row.get(header)
        if not _has_value(value):
            continue
        lines.append(f"{header}: {value}")
        if _is_quiz_score(header):
            lines += [f"Quiz performance: {value}", f"Test score: {value}"]
        if _is_attendance(header):
            lines += [f"Attendance rate: {value}", f"Presence record: {value}"]
        if _is_safety_violation(header):
            lines += [f"Safety record: {value}", f"Violation count: {value}"]

    if student_id:
        lines += [
            "",
            f"This record contains information for student {student_id}.",
            f"Student {student_id} data includes performance metrics and attendance information.",
        ]

    metadata = {
        "type": "student_record",
        "filename": filename,
        "chunk_index": index,
        "record_index": index,
        "student_id": student_id,
        "contains_fields": headers,
        "has_quiz_score": any(_is_quiz_score(h) for h in headers),
        "has_attendance": any(_is_attendance(h) for h in headers),
        "has_safety_violations": any(_is_safety_violation(h) for h in headers),
    }
    return ChunkDraft("\n".join(lines).strip(), metadata)


def chunk_table(rows: Sequence[Mapping[str, Any]], filename: str) -> list[ChunkDraft]:
    """
    Turn tabular rows into retrievable chunks.

    Args:
        rows: Data rows keyed by column name; the first row's keys are the headers
        filename: Source filename recorded in content and metadata

    Returns:
        One summary chunk followed by one chunk per row (N + 1 chunks for N rows),
        or an empty list when there are no rows
    """
    if not rows:
        return []

    headers = list(rows[0].keys())
    chunks = [_summary_chunk(headers, len(rows), filename)]
    for index, row in enumerate(rows, start=1):
        chunks.append(_row_chunk(row, headers, index, filename))
    return chunks
