"""Structural extractor: modules, ports and instantiations from clean text.

The input must already be sanitized (and usually preprocessed), so every
comment, string and inactive region is blank. Extraction relies on bounded
pattern matching plus balanced-parenthesis scans rather than a grammar;
malformed fragments are skipped instead of failing the file.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import FrozenSet, List, Optional, Tuple

from .keywords import INSTANCE_KEYWORD_DENYLIST
from .models import (
    InstanceReference,
    ModuleDefinition,
    PortBinding,
    PortDeclaration,
    PortDirection,
)
from .positions import LineIndex

logger = logging.getLogger(__name__)

_IDENT = r"[A-Za-z_][A-Za-z0-9_$]*"

# Leading horizontal whitespace only: a header never starts mid-line.
_MODULE_RE = re.compile(
    rf"^[ \t]*((?:macro)?module)\s+(?:(?:static|automatic)\s+)?({_IDENT})",
    re.MULTILINE,
)
_ENDMODULE_RE = re.compile(r"\bendmodule\b")
# Statement start: a line start or just after ";" (one-line modules).
_INSTANCE_HEAD_RE = re.compile(
    rf"(?:^|(?<=;))[ \t]*(?:{_IDENT}[ \t]*:(?!:)[ \t]*)?({_IDENT})",
    re.MULTILINE,
)
_IDENT_RE = re.compile(_IDENT)
_DIRECTION_RE = re.compile(r"^(input|output|inout|ref)\b(.*)$", re.IGNORECASE | re.DOTALL)
_RANGE_RE = re.compile(r"\[[^\]]+\]")
_BINDING_RE = re.compile(rf"\.\s*({_IDENT})\s*\(")

_OPENERS = "([{"
_CLOSERS = ")]}"


@dataclass
class ModuleSpan:
    """Offsets of one module inside the clean text."""

    name: str
    start: int
    name_end: int
    body_start: int
    body_end: int


def find_matching_paren(text: str, open_index: int, limit: int) -> int:
    """Return the index of the ``)`` closing ``text[open_index]``.

    The scan never looks past *limit* (inclusive); -1 means unbalanced.
    """
    depth = 0
    stop = min(limit, len(text) - 1)
    for i in range(open_index, stop + 1):
        ch = text[i]
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return i
    return -1


def _find_matching_bracket(text: str, open_index: int, limit: int) -> int:
    depth = 0
    stop = min(limit, len(text) - 1)
    for i in range(open_index, stop + 1):
        ch = text[i]
        if ch == "[":
            depth += 1
        elif ch == "]":
            depth -= 1
            if depth == 0:
                return i
    return -1


def _skip_ws(text: str, pos: int, limit: int) -> int:
    while pos < limit and text[pos].isspace():
        pos += 1
    return pos


def _skip_parameter_block(text: str, pos: int, limit: int) -> int:
    """Skip ``#( ... )`` starting at the ``#``; -1 when unbalanced."""
    pos = _skip_ws(text, pos + 1, limit)
    if pos >= limit or text[pos] != "(":
        return -1
    close = find_matching_paren(text, pos, limit - 1)
    if close == -1:
        return -1
    return close + 1


def split_top_level(text: str, start: int, end: int) -> List[Tuple[int, int]]:
    """Split ``text[start:end]`` on commas outside any bracket pair.

    Returns ``(begin, end)`` offsets of each fragment in *text*.
    """
    parts: List[Tuple[int, int]] = []
    depth = 0
    frag_start = start
    for i in range(start, end):
        ch = text[i]
        if ch in _OPENERS:
            depth += 1
        elif ch in _CLOSERS:
            depth = max(depth - 1, 0)
        elif ch == "," and depth == 0:
            parts.append((frag_start, i))
            frag_start = i + 1
    parts.append((frag_start, end))
    return parts


def find_module_spans(text: str) -> List[ModuleSpan]:
    headers = list(_MODULE_RE.finditer(text))
    spans: List[ModuleSpan] = []
    for i, match in enumerate(headers):
        body_start = match.end()
        body_end = len(text)
        end_match = _ENDMODULE_RE.search(text, body_start)
        if end_match:
            body_end = end_match.start()
        if i + 1 < len(headers) and headers[i + 1].start() < body_end:
            body_end = headers[i + 1].start()
        spans.append(ModuleSpan(
            name=match.group(2),
            start=match.start(1),
            name_end=match.end(2),
            body_start=body_start,
            body_end=body_end,
        ))
    return spans


class VerilogExtractor:
    """Extract :class:`ModuleDefinition` objects from one clean buffer."""

    def __init__(self, keywords: FrozenSet[str] = INSTANCE_KEYWORD_DENYLIST) -> None:
        self.keywords = keywords

    def extract(
        self,
        text: str,
        file_path: str,
        line_index: Optional[LineIndex] = None,
    ) -> List[ModuleDefinition]:
        lines = line_index or LineIndex(text)
        modules: List[ModuleDefinition] = []

        for span in find_module_spans(text):
            ports, header_end = self._parse_header(text, span, file_path, lines)
            instances = self._parse_instances(
                text, max(header_end, span.body_start), span.body_end, file_path, lines,
            )
            modules.append(ModuleDefinition(
                name=span.name,
                file_path=file_path,
                location=lines.location(file_path, span.start, span.name_end),
                ports=ports,
                instances=instances,
            ))
        return modules

    # ------------------------------------------------------------------
    # Module header
    # ------------------------------------------------------------------

    def _parse_header(
        self,
        text: str,
        span: ModuleSpan,
        file_path: str,
        lines: LineIndex,
    ) -> Tuple[List[PortDeclaration], int]:
        """Parse ``[#(...)] ( ports ) ;`` after the module name.

        Returns the ports and the offset where the body proper begins.
        """
        limit = span.body_end
        pos = _skip_ws(text, span.body_start, limit)

        if pos < limit and text[pos] == "#":
            pos = _skip_parameter_block(text, pos, limit)
            if pos == -1:
                logger.debug("Unbalanced parameter list in module %s (%s)", span.name, file_path)
                return [], span.body_start

        semi = text.find(";", pos, limit)
        open_paren = text.find("(", pos, limit)
        if open_paren == -1 or (semi != -1 and semi < open_paren):
            # No port list: "module m;" or a header we cannot bound.
            return [], (semi + 1 if semi != -1 else span.body_start)

        close_paren = find_matching_paren(text, open_paren, limit - 1)
        if close_paren == -1:
            logger.debug("Unbalanced port list in module %s (%s)", span.name, file_path)
            return [], span.body_start

        ports = self._parse_port_list(text, open_paren + 1, close_paren, file_path, lines)
        semi = text.find(";", close_paren, limit)
        return ports, (semi + 1 if semi != -1 else close_paren + 1)

    def _parse_port_list(
        self,
        text: str,
        start: int,
        end: int,
        file_path: str,
        lines: LineIndex,
    ) -> List[PortDeclaration]:
        ports: List[PortDeclaration] = []
        for frag_start, frag_end in split_top_level(text, start, end):
            port = self._parse_port_fragment(text, frag_start, frag_end, file_path, lines)
            if port is not None:
                ports.append(port)
        return ports

    @staticmethod
    def _parse_port_fragment(
        text: str,
        frag_start: int,
        frag_end: int,
        file_path: str,
        lines: LineIndex,
    ) -> Optional[PortDeclaration]:
        fragment = text[frag_start:frag_end]
        stripped = fragment.lstrip()
        if not stripped.strip():
            return None
        base = frag_start + (len(fragment) - len(stripped))

        direction = PortDirection.UNKNOWN
        rest = stripped
        rest_offset = 0
        dir_match = _DIRECTION_RE.match(stripped)
        if dir_match:
            direction = PortDirection(dir_match.group(1).lower())
            rest = dir_match.group(2)
            rest_offset = dir_match.start(2)

        eq_index = rest.find("=")
        name_source = rest[:eq_index] if eq_index != -1 else rest

        # Identifiers inside ranges (e.g. [W-1:0]) are never the port name.
        masked = _RANGE_RE.sub(lambda m: " " * len(m.group(0)), name_source)
        names = list(_IDENT_RE.finditer(masked))
        if not names:
            return None
        name_match = names[-1]

        range_match = _RANGE_RE.search(name_source)
        name_offset = base + rest_offset + name_match.start()
        return PortDeclaration(
            direction=direction,
            name=name_match.group(0),
            location=lines.location(file_path, name_offset, name_offset + len(name_match.group(0))),
            range_text=range_match.group(0) if range_match else None,
        )

    # ------------------------------------------------------------------
    # Instances
    # ------------------------------------------------------------------

    def _parse_instances(
        self,
        text: str,
        body_start: int,
        body_end: int,
        file_path: str,
        lines: LineIndex,
    ) -> List[InstanceReference]:
        result: List[InstanceReference] = []
        pos = body_start
        while pos < body_end:
            head = _INSTANCE_HEAD_RE.search(text, pos, body_end)
            if head is None:
                break
            parsed = self._parse_instance_at(text, head, body_end, file_path, lines)
            if parsed is None:
                pos = head.end()
                continue
            instance, resume = parsed
            result.append(instance)
            pos = resume
        return result

    def _parse_instance_at(
        self,
        text: str,
        head: "re.Match[str]",
        limit: int,
        file_path: str,
        lines: LineIndex,
    ) -> Optional[Tuple[InstanceReference, int]]:
        """Match ``TYPE [#(..)] NAME [#(..)] [range] (`` at *head*."""
        module_name = head.group(1)
        if module_name.lower() in self.keywords:
            return None

        pos = _skip_ws(text, head.end(), limit)
        if pos < limit and text[pos] == "#":
            pos = _skip_parameter_block(text, pos, limit)
            if pos == -1:
                return None
            pos = _skip_ws(text, pos, limit)

        inst_match = _IDENT_RE.match(text, pos, limit)
        if inst_match is None:
            return None
        instance_name = inst_match.group(0)
        if instance_name.lower() in self.keywords:
            return None

        pos = _skip_ws(text, inst_match.end(), limit)
        if pos < limit and text[pos] == "#":
            pos = _skip_parameter_block(text, pos, limit)
            if pos == -1:
                return None
            pos = _skip_ws(text, pos, limit)

        # Instance arrays: u_core [3:0] (...)
        while pos < limit and text[pos] == "[":
            close = _find_matching_bracket(text, pos, limit - 1)
            if close == -1:
                return None
            pos = _skip_ws(text, close + 1, limit)

        if pos >= limit or text[pos] != "(":
            return None

        location = lines.location(file_path, head.start(1), inst_match.end())
        close_paren = find_matching_paren(text, pos, limit - 1)
        if close_paren == -1:
            logger.debug("Unbalanced argument list for instance %s in %s", instance_name, file_path)
            instance = InstanceReference(module_name, instance_name, location)
            return instance, inst_match.end()

        bindings = self._parse_bindings(text, pos, close_paren, file_path, lines)
        instance = InstanceReference(module_name, instance_name, location, bindings)
        return instance, close_paren + 1

    @staticmethod
    def _parse_bindings(
        text: str,
        open_paren: int,
        close_paren: int,
        file_path: str,
        lines: LineIndex,
    ) -> List[PortBinding]:
        bindings: List[PortBinding] = []
        depth = 0
        i = open_paren + 1
        while i < close_paren:
            ch = text[i]
            if ch in _OPENERS:
                depth += 1
            elif ch in _CLOSERS:
                depth -= 1
            elif ch == "." and depth == 0:
                match = _BINDING_RE.match(text, i, close_paren)
                if match:
                    expr_open = match.end() - 1
                    expr_close = find_matching_paren(text, expr_open, close_paren - 1)
                    if expr_close == -1:
                        break
                    bindings.append(PortBinding(
                        port_name=match.group(1),
                        expr=text[expr_open + 1:expr_close].strip(),
                        location=lines.location(file_path, i, expr_close + 1),
                    ))
                    i = expr_close + 1
                    continue
            i += 1
        return bindings


def extract_modules(
    text: str,
    file_path: str,
    keywords: FrozenSet[str] = INSTANCE_KEYWORD_DENYLIST,
) -> List[ModuleDefinition]:
    """Convenience wrapper around :class:`VerilogExtractor`."""
    return VerilogExtractor(keywords).extract(text, file_path)
