"""
Boolean topic queries — `"world cup" AND (messi OR ronaldo) NOT injury`.

YouTube and Twitter take the full query as their search string. The keyword
platforms (News, Reddit, Instagram) can't, so the scheduler searches them
once per keyword from extract_keywords() and afterwards prunes the topic's
records that don't satisfy the whole query (matches()).

Grammar (operators are upper-case only, like the platforms that accept them):
    query  := or
    or     := and ("OR" and)*
    and    := unary (["AND"] unary)*        adjacent terms are an implicit AND
    unary  := "NOT" unary | "-" atom | atom
    atom   := "(" or ")" | "\"phrase\"" | word
Unbalanced parentheses are tolerated; a stray ")" is ignored.
"""
import re
from dataclasses import dataclass

_TOKEN     = re.compile(r'"([^"]*)"?|(\()|(\))|(-)(?=\S)|([^\s()"]+)')
_OPERATORS = {"AND", "OR", "NOT"}


@dataclass(frozen=True)
class Term:
    text: str


@dataclass(frozen=True)
class Not:
    node: object


@dataclass(frozen=True)
class AllOf:
    nodes: tuple


@dataclass(frozen=True)
class AnyOf:
    nodes: tuple


def is_boolean_query(query: str | None) -> bool:
    """True when the query uses operators, grouping or quoted phrases."""
    if not query:
        return False
    words = set(query.replace("(", " ").replace(")", " ").split())
    return (
        bool(words & _OPERATORS)
        or any(c in query for c in '()"')
        or any(w.startswith("-") and len(w) > 1 for w in words)
    )


def parse_query(query: str | None):
    """Parse into a Term / Not / AllOf / AnyOf tree. Returns None for an empty query."""
    tokens = _tokenize(query or "")
    if not tokens:
        return None
    parser = _Parser(tokens)
    node   = parser.parse_or()
    while parser.peek() is not None:
        # leftovers after a stray ")": AND them onto what we have
        parser.pos += 1
        rest = parser.parse_or()
        if rest is not None:
            node = _join(AllOf, [node, rest]) if node is not None else rest
    return node


def extract_keywords(query: str | None) -> list[str]:
    """Positive terms and phrases in query order, without duplicates or NOT-ed terms."""
    keywords: list[str] = []

    def walk(node) -> None:
        if isinstance(node, Term):
            if node.text.casefold() not in (k.casefold() for k in keywords):
                keywords.append(node.text)
        elif isinstance(node, (AllOf, AnyOf)):
            for child in node.nodes:
                walk(child)

    walk(parse_query(query))
    return keywords


def matches(query, text: str) -> bool:
    """
    Evaluate a query (string or parsed tree) against text. Terms match
    case-insensitively on word boundaries. An empty query matches everything.
    """
    node = parse_query(query) if isinstance(query, str) or query is None else query
    if node is None:
        return True
    return _eval(node, " ".join((text or "").split()).casefold())


# ── Internal ──────────────────────────────────────────────────────────────────

def _tokenize(query: str) -> list[tuple[str, str]]:
    tokens: list[tuple[str, str]] = []
    for m in _TOKEN.finditer(query):
        phrase, lparen, rparen, minus, word = m.groups()
        if phrase is not None:
            if phrase.strip():
                tokens.append(("term", " ".join(phrase.split())))
        elif lparen:
            tokens.append(("(", lparen))
        elif rparen:
            tokens.append((")", rparen))
        elif minus:
            tokens.append(("NOT", minus))
        elif word in _OPERATORS:
            tokens.append((word, word))
        elif re.search(r"\w", word):
            tokens.append(("term", word))
    return tokens


class _Parser:
    def __init__(self, tokens: list[tuple[str, str]]):
        self.tokens = tokens
        self.pos    = 0

    def peek(self) -> str | None:
        return self.tokens[self.pos][0] if self.pos < len(self.tokens) else None

    def parse_or(self):
        nodes = [self.parse_and()]
        while self.peek() == "OR":
            self.pos += 1
            nodes.append(self.parse_and())
        return _join(AnyOf, nodes)

    def parse_and(self):
        nodes = [self.parse_unary()]
        while self.peek() not in (None, "OR", ")"):
            if self.peek() == "AND":
                self.pos += 1
            nodes.append(self.parse_unary())
        return _join(AllOf, nodes)

    def parse_unary(self):
        if self.peek() == "NOT":
            self.pos += 1
            inner = self.parse_unary()
            return Not(inner) if inner is not None else None
        return self.parse_atom()

    def parse_atom(self):
        kind = self.peek()
        if kind is None:
            return None
        if kind == "(":
            self.pos += 1
            node = self.parse_or()
            if self.peek() == ")":
                self.pos += 1
            return node
        if kind in ("AND", "OR", ")"):
            # dangling operator, e.g. "cats AND" or "OR dogs"
            return None
        self.pos += 1
        return Term(self.tokens[self.pos - 1][1])


def _join(kind, nodes: list):
    nodes = [n for n in nodes if n is not None]
    if not nodes:
        return None
    if len(nodes) == 1:
        return nodes[0]
    return kind(tuple(nodes))


def _eval(node, text: str) -> bool:
    if isinstance(node, Term):
        pattern = r"(?<!\w)" + re.escape(node.text.casefold()) + r"(?!\w)"
        return re.search(pattern, text) is not None
    if isinstance(node, Not):
        return not _eval(node.node, text)
    if isinstance(node, AllOf):
        return all(_eval(n, text) for n in node.nodes)
    return any(_eval(n, text) for n in node.nodes)
