import pandas as pd
import json


REQUIRED_COLUMNS = [
    "question_text",
    "question_type",
    "options(json)",
    "correct_answer",
    "points",
    "image_url",
]


def parse_excel(file):
    df = pd.read_excel(file)

    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        # Raise KeyError so upstream router can return a HTTP 400 with a helpful message
        raise KeyError(missing[0])

    questions = []

    def get_json_value(value):
        return json.loads(value) if pd.notna(value) and str(value).strip() else None

    def get_text(value):
        return str(value).strip() if pd.notna(value) and str(value).strip() else None

    for _, row in df.iterrows():
        question_type = (get_text(row["question_type"]) or "MULTIPLE_CHOICE").upper()
        correct_answer = get_text(row["correct_answer"])
        q = {
            "question_text": get_text(row["question_text"]) or "",
            "question_type": question_type,
            "options": get_json_value(row["options(json)"]),
            "correct_answer": correct_answer.upper() if correct_answer else None,
            "points": int(row["points"]) if pd.notna(row["points"]) else 1,
            "image_url": get_text(row["image_url"]),
        }

        questions.append(q)

    return questions
