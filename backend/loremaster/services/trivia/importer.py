"""CSV question import.

Rows are ``question, correct, wrong1, wrong2, wrong3[, category[, difficulty]]``.
The correct answer is always the first choice; shuffling happens per
presentation, never on import.
"""

import csv
import io
from typing import Iterable, List, Tuple

from .selector import Question
from .settings import DIFFICULTIES


def parse_rows(rows: Iterable[List[str]]) -> Tuple[List[Question], List[str]]:
    questions: List[Question] = []
    skipped: List[str] = []
    for index, row in enumerate(rows, start=1):
        cells = [c.strip() for c in row]
        if not any(cells):
            continue
        if len(cells) < 5 or not all(cells[:5]):
            skipped.append(f"line {index}: expected question and four answers")
            continue
        category = cells[5] if len(cells) > 5 and cells[5] else None
        difficulty = cells[6].capitalize() if len(cells) > 6 and cells[6] else None
        if difficulty and difficulty not in DIFFICULTIES:
            skipped.append(f"line {index}: unknown difficulty {cells[6]!r}")
            continue
        questions.append(Question(
            id=None,
            text=cells[0],
            correct_answer=cells[1],
            wrong_answers=(cells[2], cells[3], cells[4]),
            category_id=category,
            difficulty=difficulty,
        ))
    return questions, skipped


def parse_csv(text: str) -> Tuple[List[Question], List[str]]:
    return parse_rows(csv.reader(io.StringIO(text.replace('\r', ''))))
