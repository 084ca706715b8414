CATEGORIES = [
    "Books",
    "Electronics",
    "Lab Gear",
    "Cycles",
    "Engineering Drawing",
    "Miscellaneous",
]

ALL_CATEGORIES = "All"

DESCRIPTION_SUGGESTIONS = {
    "Books": "Includes highlighted chapters, no torn pages, and ready for immediate use in current semester.",
    "Electronics": "Fully functional with charger/accessories included. Battery and ports tested recently.",
    "Lab Gear": "Maintained equipment with no leaks or cracks. Suitable for practical sessions and projects.",
    "Cycles": "Smooth brakes and gears, recently serviced, ideal for campus commute with low maintenance.",
    "Engineering Drawing": "Complete set with clean sheets and tools, lightly used and exam-ready condition.",
    "Miscellaneous": "Useful campus item in reliable condition. Can be inspected before purchase.",
}


def suggestion_for(category: str) -> str:
    return DESCRIPTION_SUGGESTIONS.get(category) or DESCRIPTION_SUGGESTIONS["Miscellaneous"]
