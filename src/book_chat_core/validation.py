from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ValidationIssue:
    code: str
    message: str
    blocking: bool = False
    details: dict[str, object] | None = None


def validate_extracted_text(
    *,
    text: str,
    book_type: str,
    min_chars: int = 50,
    min_alpha_ratio: float = 0.15,
) -> list[ValidationIssue]:
    """
    Quality checks on extracted text. Only `extraction_empty` is blocking; the rest are
    reported so operators can spot scanned or garbled sources.
    """
    issues: list[ValidationIssue] = []

    normalized = (text or "").strip()
    if not normalized:
        issues.append(
            ValidationIssue(
                code="extraction_empty",
                message="No extractable text found in the book file.",
                blocking=True,
            )
        )
        return issues

    if len(normalized) < min_chars:
        issues.append(
            ValidationIssue(
                code="extraction_too_short",
                message="Extracted text is very short.",
                details={"chars": len(normalized), "min_chars": min_chars},
            )
        )

    # str.isalpha is Unicode-aware, so Bengali and other non-Latin scripts count as letters.
    alpha = sum(1 for ch in normalized if ch.isalpha())
    alpha_ratio = alpha / max(len(normalized), 1)
    if alpha_ratio < min_alpha_ratio:
        issues.append(
            ValidationIssue(
                code="extraction_low_alpha_ratio",
                message="Extracted text looks low-quality (low alphabetic ratio).",
                details={
                    "alpha_ratio": round(alpha_ratio, 4),
                    "min_alpha_ratio": min_alpha_ratio,
                    "book_type": book_type,
                },
            )
        )

    return issues
