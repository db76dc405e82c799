import dspy

from ..schemas.hit import SearchHit

CHART_TYPES = ("bar", "line", "pie", "radar")


class AnswerSignature(dspy.Signature):
    """Answer a question about students, staff and scores using only the provided notes and records.

    If the context does not contain enough information, say so."""

    question = dspy.InputField(desc="the current user question")
    context = dspy.InputField(desc="notes, records and documents retrieved for the question")
    history = dspy.InputField(desc="earlier conversation turns, may be empty")
    answer = dspy.OutputField()
    chart_suggestion = dspy.OutputField(
        desc=(
            "for questions about scores, grades, performance trends or comparisons, or explicit chart requests: "
            "'type|title|data description' with type one of bar, line, pie, radar; otherwise empty"
        )
    )


Answerer = dspy.Predict(AnswerSignature)


def parse_chart_suggestion(raw: str | None) -> str | None:
    """
    Validate a `type|title|description` chart suggestion.

    Returns:
        The normalised suggestion, or None when it is missing or malformed
    """
    if not raw or not isinstance(raw, str):
        return None

    text = raw.strip()
    if text.upper().startswith("CHART_SUGGESTION:"):
        text = text.split(":", 1)[1].strip()

    parts = [part.strip() for part in text.split("|")]
    if len(parts) != 3 or not all(parts):
        return None

    chart_type = parts[0].lower()
    if chart_type not in CHART_TYPES:
        return None
    return "|".join([chart_type, parts[1], parts[2]])


def format_history(history: list[tuple[str, str]]) -> str:
    return "\n".join(f"{role}: {text}" for role, text in history)


def run_answerer(question: str, passages: list[SearchHit], history: list[tuple[str, str]] | None = None) -> dict:
    """
    Formats passages into a context string, calls the DSPy program,
    and validates the output.

    Args:
        question: The user's question.
        passages: Ranked hits from the retrieval pipeline
        history: (role, text) pairs of earlier turns

    Returns:
        A dictionary containing the answer and an optional chart suggestion.
    """
    context = "\n\n".join(hit.content for hit in passages)

    # Requires a configured DSPy language model, e.g. dspy.configure(lm=dspy.LM("openai/gpt-4o-mini"))
    out = Answerer(question=question, context=context, history=format_history(history or []))

    return {
        "answer": (getattr(out, "answer", "") or "").strip(),
        "chart_suggestion": parse_chart_suggestion(getattr(out, "chart_suggestion", None)),
    }
