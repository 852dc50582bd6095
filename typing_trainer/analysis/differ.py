import difflib
import logging
from typing import List, Optional, Tuple

from typing_trainer.types import (
    AnalysisContext,
    DifferenceAnalysis,
    ErrorContext,
    ErrorDistribution,
    ErrorType,
    TypingError,
)

EQUAL = "equal"
DELETE = "delete"
INSERT = "insert"

Diff = Tuple[str, str]


def common_prefix_length(a: str, b: str) -> int:
    n = min(len(a), len(b))
    i = 0
    while i < n and a[i] == b[i]:
        i += 1
    return i


def common_suffix_length(a: str, b: str) -> int:
    n = min(len(a), len(b))
    i = 0
    while i < n and a[-1 - i] == b[-1 - i]:
        i += 1
    return i


def diff_text(target: str, typed: str) -> List[Diff]:
    """Character diff of ``typed`` against ``target`` as (operation, text) pairs.

    The common prefix is peeled off before aligning the middle, so an edit inside
    a run of repeated characters lands after the matching prefix. The common
    suffix is peeled off only once the input covers the whole target; a shorter
    input ends where the typist is, not at the end of the target.
    A replaced block is reported as a delete followed by an insert.
    """
    prefix = common_prefix_length(target, typed)
    suffix = 0
    if len(typed) >= len(target):
        suffix = common_suffix_length(target[prefix:], typed[prefix:])
    target_mid = target[prefix : len(target) - suffix]
    typed_mid = typed[prefix : len(typed) - suffix]

    diffs: List[Diff] = []
    if prefix:
        diffs.append((EQUAL, target[:prefix]))

    matcher = difflib.SequenceMatcher(None, target_mid, typed_mid, autojunk=False)
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            diffs.append((EQUAL, target_mid[i1:i2]))
        elif tag == "delete":
            diffs.append((DELETE, target_mid[i1:i2]))
        elif tag == "insert":
            diffs.append((INSERT, typed_mid[j1:j2]))
        else:
            diffs.append((DELETE, target_mid[i1:i2]))
            diffs.append((INSERT, typed_mid[j1:j2]))

    if suffix:
        diffs.append((EQUAL, target[len(target) - suffix :]))

    return _merge_adjacent(diffs)


def _merge_adjacent(diffs: List[Diff]) -> List[Diff]:
    merged: List[Diff] = []
    for op, text in diffs:
        if not text:
            continue
        if merged and merged[-1][0] == op:
            merged[-1] = (op, merged[-1][1] + text)
        else:
            merged.append((op, text))
    return merged


def drop_pending_tail(diffs: List[Diff]) -> List[Diff]:
    """Strip target text the typist has not reached yet.

    A trailing delete is untyped text, not missing text. When the input ends in
    a replaced block, only as much of the deleted target as was typed over
    counts as missing.
    """
    diffs = list(diffs)
    if diffs and diffs[-1][0] == DELETE:
        diffs.pop()
    elif len(diffs) >= 2 and diffs[-1][0] == INSERT and diffs[-2][0] == DELETE:
        deleted, inserted = diffs[-2][1], diffs[-1][1]
        if len(deleted) > len(inserted):
            diffs[-2] = (DELETE, deleted[: len(inserted)])
    return diffs


class DifferenceAnalyzer:
    """Compares typed input against target text and classifies the errors."""

    CONTEXT_SIZE = 5

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def analyze(self, target_text: str, input_text: str) -> DifferenceAnalysis:
        diffs = drop_pending_tail(diff_text(target_text, input_text))
        return self.process_differences(diffs, target_text)

    def process_differences(self, diffs: List[Diff], target_text: str) -> DifferenceAnalysis:
        analysis = DifferenceAnalysis()
        position = 0
        previous_op = None

        for op, text in diffs:
            if op == EQUAL:
                analysis.correct_characters += len(text)
                position += len(text)
            elif op == DELETE:
                analysis.missing_characters += len(text)
                analysis.errors.append(
                    TypingError(
                        type=ErrorType.MISSING,
                        position=position,
                        expected=text,
                        actual="",
                        context=self.get_error_context(target_text, position),
                    )
                )
            elif op == INSERT:
                analysis.extra_characters += len(text)
                analysis.incorrect_characters += len(text)
                # Extra text right after a correct run belongs to the character it followed
                error_position = position - 1 if previous_op == EQUAL else position
                analysis.errors.append(
                    TypingError(
                        type=ErrorType.EXTRA,
                        position=error_position,
                        expected="",
                        actual=text,
                        context=self.get_error_context(target_text, error_position),
                    )
                )
                position += len(text)
            previous_op = op

        analysis.context = AnalysisContext(
            total_words=len(target_text.split(" ")),
            error_distribution=self.calculate_error_distribution(analysis.errors, len(target_text)),
            overall_accuracy=analysis.accuracy,
        )
        self.logger.debug(
            f"Analyzed {len(diffs)} diff spans: {analysis.correct_characters} correct, "
            f"{analysis.missing_characters} missing, {analysis.extra_characters} extra"
        )
        return analysis

    def get_error_context(self, text: str, position: int) -> ErrorContext:
        start = max(0, position - self.CONTEXT_SIZE)
        end = min(len(text), position + self.CONTEXT_SIZE)
        words_before = len(text[:position].split(" "))
        total_words = len(text.split(" "))
        return ErrorContext(
            before=text[start:position],
            after=text[position:end],
            word_number=words_before,
            word_percentage=words_before / total_words * 100,
        )

    @staticmethod
    def calculate_error_distribution(errors: List[TypingError], text_length: int) -> ErrorDistribution:
        first_third = text_length * 0.33
        second_third = text_length * 0.66
        return ErrorDistribution(
            beginning=sum(1 for e in errors if e.position < first_third),
            middle=sum(1 for e in errors if first_third <= e.position < second_third),
            end=sum(1 for e in errors if e.position >= second_third),
        )
