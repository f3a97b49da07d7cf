"""Lexical sanitizer: blanks comments, strings and attributes in place.

Every removed character becomes a space while newlines survive at their
original offsets, so any offset computed on the sanitized text maps to the
same line and column in the original file.
"""

from __future__ import annotations

from typing import List

_CODE = 0
_LINE_COMMENT = 1
_BLOCK_COMMENT = 2
_ATTRIBUTE = 3
_STRING = 4


def _blank(ch: str) -> str:
    return "\n" if ch == "\n" else " "


def sanitize(text: str) -> str:
    """Return *text* with comments, string literals and ``(* *)`` blanked.

    Unterminated block comments, attributes and strings run to end of
    input. The result always has the same length as *text*.
    """
    out: List[str] = []
    mode = _CODE
    i = 0
    n = len(text)

    while i < n:
        ch = text[i]
        nxt = text[i + 1] if i + 1 < n else ""

        if mode == _CODE:
            if ch == "/" and nxt == "/":
                mode = _LINE_COMMENT
                out.append("  ")
                i += 2
            elif ch == "/" and nxt == "*":
                mode = _BLOCK_COMMENT
                out.append("  ")
                i += 2
            elif ch == "(" and nxt == "*" and text[i + 2:i + 3] != ")":
                # "(*)" is the @(*) sensitivity wildcard, not an attribute.
                mode = _ATTRIBUTE
                out.append("  ")
                i += 2
            elif ch == '"':
                mode = _STRING
                out.append(" ")
                i += 1
            else:
                out.append(ch)
                i += 1

        elif mode == _LINE_COMMENT:
            if ch == "\n":
                mode = _CODE
            out.append(_blank(ch))
            i += 1

        elif mode == _BLOCK_COMMENT:
            if ch == "*" and nxt == "/":
                mode = _CODE
                out.append("  ")
                i += 2
            else:
                out.append(_blank(ch))
                i += 1

        elif mode == _ATTRIBUTE:
            if ch == "*" and nxt == ")":
                mode = _CODE
                out.append("  ")
                i += 2
            else:
                out.append(_blank(ch))
                i += 1

        else:  # _STRING
            if ch == "\\" and i + 1 < n:
                out.append(" ")
                out.append(_blank(nxt))
                i += 2
            else:
                if ch == '"':
                    mode = _CODE
                out.append(_blank(ch))
                i += 1

    return "".join(out)
