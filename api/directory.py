import re

from api.models import Student

UNASSIGNED = 'Unassigned'
UNKNOWN = 'Unknown'

DRILL_DOWN_KINDS = ('all', 'counsellor', 'section')


def search_students(students: list[Student], query: str) -> list[Student]:
    """
    Free-text match over the roster, in roster order.

    An empty query matches nothing. Text fields are compared case-insensitively;
    phone numbers are compared as raw substrings.
    """
    if not (query or '').strip():
        return []
    q = query.lower()
    results = []
    for s in students:
        if (
            q in s.name.lower()
            or q in s.reg_no.lower()
            or q in s.counsellor.lower()
            or q in s.branch.lower()
            or q in s.section.lower()
            or q in s.year.lower()
            or (s.phone1 and query in s.phone1)
            or (s.phone2 and query in s.phone2)
        ):
            results.append(s)
    return results


def counsellor_label(s: Student) -> str:
    return s.counsellor or UNASSIGNED


def section_key(s: Student) -> str:
    return f"{s.year}-{s.branch}-{s.section}"


def _by_count_desc(counts: dict) -> dict:
    # sorted() is stable, so ties keep first-seen order
    return dict(sorted(counts.items(), key=lambda kv: -kv[1]))


def _year_sort_key(year: str):
    if re.fullmatch(r'\d+(\.\d+)?', year.strip()):
        return (0, float(year), year)
    return (1, 0.0, year)


def aggregate_students(students: list[Student]) -> dict:
    counsellors: dict[str, int] = {}
    sections: dict[str, int] = {}
    branches: dict[str, int] = {}
    branch_years: dict[str, dict[str, int]] = {}

    for s in students:
        c = counsellor_label(s)
        sec = section_key(s)
        br = s.branch or UNKNOWN
        yr = s.year or UNKNOWN
        counsellors[c] = counsellors.get(c, 0) + 1
        sections[sec] = sections.get(sec, 0) + 1
        branches[br] = branches.get(br, 0) + 1
        years = branch_years.setdefault(br, {})
        years[yr] = years.get(yr, 0) + 1

    breakdown = {
        br: {y: years[y] for y in sorted(years, key=_year_sort_key)}
        for br, years in branch_years.items()
    }
    return {
        'total': len(students),
        'byCounsellor': _by_count_desc(counsellors),
        'bySectionKey': dict(sorted(sections.items())),
        'byBranch': _by_count_desc(branches),
        'branchYearBreakdown': {br: breakdown[br] for br in _by_count_desc(branches)},
        'sectionCount': len(sections),
    }


def filter_breakdown(counts: dict, text: str) -> dict:
    needle = (text or '').lower()
    return {label: n for label, n in counts.items() if needle in label.lower()}


def drill_down(students: list[Student], kind: str = 'all', value: str | None = None) -> list[Student]:
    kind = (kind or 'all').strip().lower()
    if kind not in DRILL_DOWN_KINDS:
        raise ValueError(f"Unknown filter '{kind}'")
    if kind == 'all' or not value:
        return list(students)
    if kind == 'counsellor':
        return [s for s in students if counsellor_label(s) == value]
    return [s for s in students if section_key(s) == value]
