"""Grade / level tags used on forms and their display labels."""

from typing import Optional

UNIVERSAL_GRADE = "all"
UNKNOWN_GRADE = "unknown"

# Display names; change a label here to rename it everywhere
GRADE_DISPLAY_NAMES = {
    # Single grades
    "K": "Kindergarten",
    **{str(grade): f"Grade {grade}" for grade in range(1, 13)},
    # Ranges
    "K-1": "Grades K-1",
    "1-2": "Grades 1-2",
    "2-3": "Grades 2-3",
    "3-4": "Grades 3-4",
    "4-5": "Grades 4-5",
    "5-6": "Grades 5-6",
    "6-7": "Grades 6-7",
    "6-8": "Grades 6-8",
    "7-8": "Grades 7-8",
    "9-12": "High School (9-12)",
    # Assessment bands
    **{f"G{grade}": f"Grade {grade} (Band)" for grade in range(1, 9)},
    "G2_3": "Grades 2-3 (Combined)",
    UNIVERSAL_GRADE: "All Grades",
}


def get_grade_label(tag: Optional[str]) -> str:
    """Human-readable label, falling back to the raw tag."""

    if not tag:
        return "Unknown"
    return GRADE_DISPLAY_NAMES.get(tag, tag)
