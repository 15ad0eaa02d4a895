"""A small text template engine for customising records and messages."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, Union


@dataclass
class TemplateInput:
    """Values available to templates."""

    id: int = 0
    question: str = ""
    question_class: str = ""
    question_type: str = ""
    blocklist: str = ""
    blocklist_rule: str = ""


_FIELDS = {
    "ID": "id",
    "Question": "question",
    "QuestionClass": "question_class",
    "QuestionType": "question_type",
    "Blocklist": "blocklist",
    "BlocklistRule": "blocklist_rule",
}


def _need_str(*values: Any) -> None:
    for v in values:
        if not isinstance(v, str):
            raise ValueError(f"expected string argument, got {v!r}")


def _replace_all(s: str, old: str, new: str) -> str:
    _need_str(s, old, new)
    return s.replace(old, new)


def _trim_prefix(s: str, prefix: str) -> str:
    _need_str(s, prefix)
    return s[len(prefix):] if prefix and s.startswith(prefix) else s


def _trim_suffix(s: str, suffix: str) -> str:
    _need_str(s, suffix)
    return s[: -len(suffix)] if suffix and s.endswith(suffix) else s


def _split(s: str, sep: str) -> List[str]:
    _need_str(s, sep)
    return s.split(sep) if sep else list(s)


def _join(items: List[str], sep: str) -> str:
    if not isinstance(items, list):
        raise ValueError(f"expected list argument, got {items!r}")
    _need_str(sep, *items)
    return sep.join(items)


_FUNCS: Dict[str, Callable[..., Any]] = {
    "replaceAll": _replace_all,
    "trimPrefix": _trim_prefix,
    "trimSuffix": _trim_suffix,
    "split": _split,
    "join": _join,
}

Node = Tuple[str, Any]
Command = List[Node]


def _lex_action(text: str, i: int) -> Tuple[List[Tuple[str, Any]], int, bool, bool]:
    """Tokenize one action starting after '{{'. Returns tokens, end, trim_right, comment."""
    tokens: List[Tuple[str, Any]] = []
    n = len(text)
    comment = False
    while True:
        while i < n and text[i] in " \t\r\n":
            i += 1
        if i >= n:
            raise ValueError("unclosed action")
        if text.startswith("-}}", i) and i > 0 and text[i - 1] in " \t\r\n":
            return tokens, i + 3, True, comment
        if text.startswith("}}", i):
            return tokens, i + 2, False, comment
        c = text[i]
        if text.startswith("/*", i) and not tokens:
            end = text.find("*/", i + 2)
            if end < 0:
                raise ValueError("unclosed comment")
            i = end + 2
            comment = True
        elif c == '"':
            j = i + 1
            while j < n and text[j] != '"':
                j += 2 if text[j] == "\\" else 1
            if j >= n:
                raise ValueError("unterminated quoted string")
            try:
                tokens.append(("str", json.loads(text[i:j + 1])))
            except json.JSONDecodeError as e:
                raise ValueError(f"bad string literal: {e}") from e
            i = j + 1
        elif c == "`":
            j = text.find("`", i + 1)
            if j < 0:
                raise ValueError("unterminated raw string")
            tokens.append(("str", text[i + 1:j]))
            i = j + 1
        elif c in "()|":
            tokens.append((c, None))
            i += 1
        elif c == ".":
            j = i + 1
            while j < n and (text[j].isalnum() or text[j] == "_"):
                j += 1
            tokens.append(("field", text[i + 1:j]) if j > i + 1 else ("dot", None))
            i = j
        elif c.isdigit() or (c == "-" and i + 1 < n and text[i + 1].isdigit()):
            j = i + 1
            while j < n and text[j].isdigit():
                j += 1
            tokens.append(("num", int(text[i:j])))
            i = j
        elif c.isalpha() or c == "_":
            j = i
            while j < n and (text[j].isalnum() or text[j] == "_"):
                j += 1
            name = text[i:j]
            if name not in _FUNCS:
                raise ValueError(f'function "{name}" not defined')
            tokens.append(("func", name))
            i = j
        else:
            raise ValueError(f"unexpected character {c!r} in action")


def _parse_pipeline(tokens: List[Tuple[str, Any]], i: int, nested: bool) -> Tuple[List[Command], int]:
    commands: List[Command] = []
    current: Command = []
    while i < len(tokens):
        kind, value = tokens[i]
        if kind == ")":
            if not nested:
                raise ValueError("unexpected right paren")
            break
        if kind == "|":
            if not current:
                raise ValueError("missing value for command")
            commands.append(current)
            current = []
            i += 1
        elif kind == "(":
            sub, i = _parse_pipeline(tokens, i + 1, True)
            if i >= len(tokens):
                raise ValueError("unclosed left paren")
            current.append(("pipe", sub))
            i += 1
        else:
            current.append((kind, value))
            i += 1
    else:
        if nested:
            raise ValueError("unclosed left paren")
    if not current:
        raise ValueError("missing value for command")
    commands.append(current)
    return commands, i


class Template:
    """A parsed text template."""

    def __init__(self, text: str) -> None:
        self._parts: List[Union[str, List[Command]]] = []
        i = 0
        trim_next = False
        while i < len(text):
            j = text.find("{{", i)
            literal = text[i:] if j < 0 else text[i:j]
            if trim_next:
                literal = literal.lstrip()
                trim_next = False
            if j < 0:
                self._parts.append(literal)
                break
            k = j + 2
            if text.startswith("-", k) and k + 1 < len(text) and text[k + 1] in " \t\r\n":
                literal = literal.rstrip()
                k += 2
            self._parts.append(literal)
            tokens, i, trim_next, comment = _lex_action(text, k)
            if comment and not tokens:
                continue
            commands, _ = _parse_pipeline(tokens, 0, False)
            self._parts.append(commands)

    def apply(self, data: TemplateInput) -> str:
        """Render the template with the given input."""
        out = []
        for part in self._parts:
            if isinstance(part, str):
                out.append(part)
            else:
                out.append(_format(_run_pipeline(part, data)))
        return "".join(out)


def _format(value: Any) -> str:
    if isinstance(value, list):
        return "[" + " ".join(_format(v) for v in value) + "]"
    return str(value)


def _eval_node(node: Node, data: TemplateInput) -> Any:
    kind, value = node
    if kind in ("str", "num"):
        return value
    if kind == "dot":
        return data
    if kind == "field":
        attr = _FIELDS.get(value)
        if attr is None:
            raise ValueError(f"can't evaluate field {value}")
        return getattr(data, attr)
    if kind == "pipe":
        return _run_pipeline(value, data)
    raise ValueError(f"can't give argument to non-function {value}")


def _run_pipeline(commands: List[Command], data: TemplateInput) -> Any:
    result: Optional[Any] = None
    has_prev = False
    for command in commands:
        head_kind, head = command[0]
        if head_kind == "func":
            args = [_eval_node(n, data) for n in command[1:]]
            if has_prev:
                args.append(result)
            try:
                result = _FUNCS[head](*args)
            except TypeError as e:
                raise ValueError(f"wrong number of args for {head}") from e
        else:
            if len(command) > 1 or has_prev:
                raise ValueError("can't give argument to non-function")
            result = _eval_node(command[0], data)
        has_prev = True
    return result