"""Line-oriented conditional-compilation preprocessor.

Only symbol presence is modelled: ``define``/``undef`` mutate the caller's
symbol set, ``ifdef``/``ifndef``/``elsif``/``else``/``endif`` select which
lines survive. Directive lines and inactive lines are blanked with spaces so
line and column numbering never shifts. Macro bodies are never substituted.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Set

logger = logging.getLogger(__name__)

_DIRECTIVE_RE = re.compile(r"^[ \t]*`([A-Za-z_]\w*)(.*)$")
_IDENT_RE = re.compile(r"[A-Za-z_]\w*")
_FILELIST_DEFINE_RE = re.compile(r"\+define\+(\S+)")


@dataclass
class ConditionalFrame:
    """One open ``ifdef``/``ifndef`` block."""

    parent_active: bool
    active: bool
    branch_taken: bool


def _first_name(rest: str) -> Optional[str]:
    match = _IDENT_RE.search(rest)
    return match.group(0) if match else None


def _blank_line(line: str) -> str:
    return " " * len(line)


def preprocess(text: str, defines: Set[str]) -> str:
    """Resolve conditional regions of *text* against *defines*.

    *defines* is mutated by ``define``/``undef`` directives in active
    regions, which is how definitions carry over to later files.
    """
    stack: List[ConditionalFrame] = []
    out: List[str] = []

    # split on "\n" only; other separators never start a line for offsets
    for raw in text.split("\n"):
        body = raw[:-1] if raw.endswith("\r") else raw
        ending = raw[len(body):]
        active = stack[-1].active if stack else True

        match = _DIRECTIVE_RE.match(body)
        if match is None:
            out.append((body if active else _blank_line(body)) + ending)
            continue

        directive = match.group(1)
        name = _first_name(match.group(2))

        if directive == "define":
            if active and name:
                defines.add(name)
        elif directive == "undef":
            if active and name:
                defines.discard(name)
        elif directive in ("ifdef", "ifndef"):
            hit = name is not None and name in defines
            if directive == "ifndef":
                hit = not hit
            frame_active = active and hit
            stack.append(ConditionalFrame(parent_active=active, active=frame_active, branch_taken=frame_active))
        elif directive == "elsif":
            if stack:
                frame = stack[-1]
                if not frame.parent_active or frame.branch_taken:
                    frame.active = False
                else:
                    frame.active = name is not None and name in defines
                    frame.branch_taken = frame.active
        elif directive == "else":
            if stack:
                frame = stack[-1]
                if not frame.parent_active or frame.branch_taken:
                    frame.active = False
                else:
                    frame.active = True
                    frame.branch_taken = True
        elif directive == "endif":
            if stack:
                stack.pop()
        # Any other directive (`include, `timescale, macro use) is dropped.

        out.append(_blank_line(body) + ending)

    if stack:
        logger.debug("%d conditional block(s) left open at end of input", len(stack))
    return "\n".join(out)


def parse_define_args(values: Iterable[str]) -> Set[str]:
    """Normalise ``NAME`` / ``NAME=VALUE`` symbols into a name set."""
    names: Set[str] = set()
    for value in values:
        name = value.split("=", 1)[0].strip().lstrip("`")
        if _IDENT_RE.fullmatch(name):
            names.add(name)
        elif name:
            logger.warning("Ignoring invalid define '%s'", value)
    return names


def read_filelist_defines(text: str) -> Set[str]:
    """Collect symbol names from ``+define+A+B=1`` entries of a filelist."""
    values: List[str] = []
    for line in text.splitlines():
        line = line.split("//", 1)[0].strip()
        for match in _FILELIST_DEFINE_RE.finditer(line):
            values.extend(part for part in match.group(1).split("+") if part)
    return parse_define_args(values)
