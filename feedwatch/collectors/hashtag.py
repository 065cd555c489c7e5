"""
Topic name → Instagram hashtag.

Hashtag search only accepts a single token of letters, digits and underscores,
so a free-text topic like "Climate Change (2024)" becomes "climatechange2024".
Boolean operators and quotes are dropped. Returns None when nothing usable is left.
"""
import re
import unicodedata

_OPERATORS   = re.compile(r"\b(AND|OR|NOT)\b")
_NON_TAG     = re.compile(r"[^\w]+", re.UNICODE)
_MAX_TAG_LEN = 100


def to_search_hashtag(topic_name: str | None) -> str | None:
    if not topic_name:
        return None
    text = unicodedata.normalize("NFKC", topic_name)
    text = _OPERATORS.sub(" ", text)
    tag  = _NON_TAG.sub("", text).lower().lstrip("_")
    if not tag or tag.isdigit():
        return None
    return tag[:_MAX_TAG_LEN]
