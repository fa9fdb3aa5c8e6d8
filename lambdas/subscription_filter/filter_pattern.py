# lambdas/subscription_filter/filter_pattern.py
"""
Evaluates CloudWatch Logs filter patterns against individual log messages.

Two pattern families are supported:

* JSON patterns such as `{ $.level = "ERROR" || $.level = "WARN" }`, with
  `&&`/`||`, parentheses, `=`/`!=` on strings (with `*` wildcards) and numbers,
  `<`/`<=`/`>`/`>=` on numbers, and the `IS NULL`, `IS TRUE`, `IS FALSE` and
  `NOT EXISTS` checks. Messages that are not JSON never match a JSON pattern.
* Unstructured term patterns: every plain term (or "quoted phrase") must
  appear, `-term` must not appear, and `?term` terms match if any one appears.

An empty pattern matches every message.
"""
import json
import re
from typing import Any, Callable, List, Optional, Tuple

from ..common.errors import FilterPatternError

_MISSING = object()

_TOKEN_RE = re.compile(r'''
    \s*(?:
        (?P<and>&&)
      | (?P<or>\|\|)
      | (?P<op>!=|<=|>=|=|<|>)
      | (?P<lparen>\()
      | (?P<rparen>\))
      | (?P<lbrace>\{)
      | (?P<rbrace>\})
      | (?P<string>"(?:[^"\\]|\\.)*")
      | (?P<selector>\$(?:\.[A-Za-z0-9_\-@]+|\[\d+\])*)
      | (?P<word>[^\s(){}&|=!<>"]+)
    )''', re.VERBOSE)

_PATH_PART_RE = re.compile(r'\.([A-Za-z0-9_\-@]+)|\[(\d+)\]')
_TERM_RE = re.compile(r'([?-]?)(?:"((?:[^"\\]|\\.)*)"|(\S+))')

Predicate = Callable[[Any], bool]


def _tokenize(text: str) -> List[Tuple[str, str]]:
    tokens = []
    pos = 0
    text = text.rstrip()
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if not match or match.end() == pos:
            raise FilterPatternError(f"Unexpected character at position {pos}: {text[pos:pos + 10]!r}")
        kind = match.lastgroup
        tokens.append((kind, match.group(kind)))
        pos = match.end()
    return tokens


def _resolve(document: Any, selector: str) -> Any:
    """Follows a `$.a.b[0]` selector into a parsed JSON document."""
    value = document
    for key, index in _PATH_PART_RE.findall(selector[1:]):
        if key:
            if not isinstance(value, dict) or key not in value:
                return _MISSING
            value = value[key]
        else:
            idx = int(index)
            if not isinstance(value, list) or idx >= len(value):
                return _MISSING
            value = value[idx]
    return value


def _parse_number(literal: str) -> Optional[float]:
    try:
        return float(literal)
    except ValueError:
        return None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _wildcard_regex(literal: str) -> re.Pattern:
    return re.compile("^" + ".*".join(re.escape(part) for part in literal.split("*")) + "$", re.DOTALL)


class _JsonPatternParser:
    """Recursive-descent parser; `&&` binds tighter than `||`."""

    def __init__(self, tokens: List[Tuple[str, str]]):
        self.tokens = tokens
        self.pos = 0

    def _peek(self) -> Optional[Tuple[str, str]]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _take(self, kind: Optional[str] = None) -> Tuple[str, str]:
        token = self._peek()
        if token is None:
            raise FilterPatternError("Unexpected end of filter pattern.")
        if kind and token[0] != kind:
            raise FilterPatternError(f"Expected {kind} but found {token[1]!r}.")
        self.pos += 1
        return token

    def parse(self) -> Predicate:
        self._take("lbrace")
        predicate = self._or_expr()
        self._take("rbrace")
        if self._peek() is not None:
            raise FilterPatternError(f"Unexpected trailing token {self._peek()[1]!r}.")
        return predicate

    def _or_expr(self) -> Predicate:
        branches = [self._and_expr()]
        while self._peek() and self._peek()[0] == "or":
            self._take("or")
            branches.append(self._and_expr())
        if len(branches) == 1:
            return branches[0]
        return lambda doc: any(branch(doc) for branch in branches)

    def _and_expr(self) -> Predicate:
        branches = [self._atom()]
        while self._peek() and self._peek()[0] == "and":
            self._take("and")
            branches.append(self._atom())
        if len(branches) == 1:
            return branches[0]
        return lambda doc: all(branch(doc) for branch in branches)

    def _atom(self) -> Predicate:
        token = self._peek()
        if token and token[0] == "lparen":
            self._take("lparen")
            predicate = self._or_expr()
            self._take("rparen")
            return predicate
        return self._comparison()

    def _comparison(self) -> Predicate:
        _, selector = self._take("selector")
        token = self._take()

        if token[0] == "word" and token[1].upper() == "IS":
            _, keyword = self._take("word")
            checks = {
                "NULL": lambda v: v is None,
                "TRUE": lambda v: v is True,
                "FALSE": lambda v: v is False,
            }
            check = checks.get(keyword.upper())
            if check is None:
                raise FilterPatternError(f"Unsupported IS check: {keyword!r}.")
            return lambda doc: check(_resolve(doc, selector))

        if token[0] == "word" and token[1].upper() == "NOT":
            _, keyword = self._take("word")
            if keyword.upper() != "EXISTS":
                raise FilterPatternError(f"Expected EXISTS after NOT, found {keyword!r}.")
            return lambda doc: _resolve(doc, selector) is _MISSING

        if token[0] != "op":
            raise FilterPatternError(f"Expected a comparison operator after {selector}, found {token[1]!r}.")
        operator = token[1]
        kind, literal = self._take()
        if kind not in ("string", "word"):
            raise FilterPatternError(f"Expected a value after {selector} {operator}, found {literal!r}.")
        return self._build_comparison(selector, operator, kind, literal)

    @staticmethod
    def _build_comparison(selector: str, operator: str, kind: str, literal: str) -> Predicate:
        number = _parse_number(literal) if kind == "word" else None

        if number is not None:
            compare = {
                "=": lambda v: v == number,
                "!=": lambda v: v != number,
                "<": lambda v: v < number,
                "<=": lambda v: v <= number,
                ">": lambda v: v > number,
                ">=": lambda v: v >= number,
            }[operator]

            def numeric(doc: Any) -> bool:
                value = _resolve(doc, selector)
                return _is_number(value) and compare(value)
            return numeric

        if operator not in ("=", "!="):
            raise FilterPatternError(f"Operator {operator} needs a numeric value, got {literal!r}.")

        text = json.loads(literal) if kind == "string" else literal
        matcher = _wildcard_regex(text) if "*" in text else None

        def textual(doc: Any) -> bool:
            value = _resolve(doc, selector)
            if not isinstance(value, str):
                return False
            equal = bool(matcher.match(value)) if matcher else value == text
            return equal if operator == "=" else not equal
        return textual


def _compile_terms(text: str) -> Predicate:
    if text.lstrip().startswith("["):
        raise FilterPatternError("Space-delimited filter patterns are not supported.")
    required, excluded, optional = [], [], []
    for prefix, quoted, bare in _TERM_RE.findall(text):
        term = quoted.replace('\\"', '"') if quoted else bare
        {"": required, "-": excluded, "?": optional}[prefix].append(term)

    def predicate(message: str) -> bool:
        if optional and not any(term in message for term in optional):
            return False
        if any(term in message for term in excluded):
            return False
        return all(term in message for term in required)
    return predicate


class FilterPattern:
    """A compiled CloudWatch Logs filter pattern."""

    def __init__(self, text: str):
        self.text = text
        self.is_json = text.strip().startswith("{")
        if not text.strip():
            self._predicate = lambda message: True
        elif self.is_json:
            json_predicate = _JsonPatternParser(_tokenize(text)).parse()
            self._predicate = lambda message: self._match_json(json_predicate, message)
        else:
            self._predicate = _compile_terms(text)

    @classmethod
    def parse(cls, text: str) -> "FilterPattern":
        return cls(text)

    @staticmethod
    def _match_json(predicate: Predicate, message: str) -> bool:
        try:
            document = json.loads(message)
        except (TypeError, json.JSONDecodeError):
            return False
        return predicate(document)

    def matches(self, message: str) -> bool:
        return bool(self._predicate(message))

    def __repr__(self) -> str:
        return f"FilterPattern({self.text!r})"
