# promptgen/core/document.py
"""
Assembles the final prompt document.

Layout (fixed order, optional sections in brackets):

    <system_prompt>, <instruction>, [<file_tree>], <code> with one <file path="...">
    per selected file, [<remote> with one <source url="...">], [<terminal_command>,
    <terminal_output>], <instruction> again.

Every free-text body is wrapped in CDATA. A `]]>` inside the body is split
across two adjacent CDATA chunks, so concatenating the chunks gives back the
original text. Characters CDATA cannot carry as-is are written between chunks:
a carriage return as the `&#13;` reference (parsers would otherwise fold CRLF
into LF), and characters XML forbids outright (ANSI escapes, form feeds and
other C0 controls, lone surrogates) as an empty `<ctl code="1b"/>` element.
parse_document() folds those elements back into the surrounding text.

Attribute values are escaped with html.escape(quote=True), plus character
references for tab, newline and carriage return so attribute normalization
leaves them intact.
"""
import html
import re
import xml.etree.ElementTree as ET
from typing import Callable, List, Optional

from loguru import logger

from .models import DocumentResult, FileEntry, RemoteSource
from .token_counter import count_tokens, estimate_tokens

CDATA_OPEN = "<![CDATA["
CDATA_CLOSE = "]]>"
_CDATA_SPLIT = "]]" + CDATA_CLOSE + CDATA_OPEN + ">"
CONTROL_TAG = "ctl"
MISSING_CONTENT_MARKER = "[Error: file content was not loaded]"

_NEEDS_ESCAPE = re.compile("[\r\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]")
_FORBIDDEN_IN_ATTR = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]")
_ATTR_WHITESPACE = {"\t": "&#9;", "\n": "&#10;", "\r": "&#13;"}

def _cdata_chunk(text: str) -> str:
    return CDATA_OPEN + text.replace(CDATA_CLOSE, _CDATA_SPLIT) + CDATA_CLOSE

def _escape_char(ch: str) -> str:
    if ch == "\r":
        return "&#13;"
    return f'<{CONTROL_TAG} code="{ord(ch):x}"/>'

def wrap_cdata(text: str) -> str:
    parts: List[str] = []
    pos = 0
    for match in _NEEDS_ESCAPE.finditer(text):
        if match.start() > pos:
            parts.append(_cdata_chunk(text[pos:match.start()]))
        parts.append(_escape_char(match.group()))
        pos = match.end()
    if pos < len(text) or not parts:
        parts.append(_cdata_chunk(text[pos:]))
    return "".join(parts)

def escape_attr(value: str) -> str:
    # XML cannot represent these in an attribute at all
    value = _FORBIDDEN_IN_ATTR.sub("\ufffd", value)
    escaped = html.escape(value, quote=True)
    return "".join(_ATTR_WHITESPACE.get(ch, ch) for ch in escaped)

def _section(tag: str, body: str) -> str:
    return f"<{tag}>{wrap_cdata(body)}</{tag}>"

def _fold_controls(element: ET.Element) -> None:
    previous: Optional[ET.Element] = None
    for child in list(element):
        if child.tag != CONTROL_TAG:
            _fold_controls(child)
            previous = child
            continue
        restored = chr(int(child.get("code", "0"), 16)) + (child.tail or "")
        if previous is None:
            element.text = (element.text or "") + restored
        else:
            previous.tail = (previous.tail or "") + restored
        element.remove(child)

def parse_document(text: str) -> ET.Element:
    """
    Parses an assembled document under a synthetic <document> root.
    Escaped characters are restored, so each section's .text is the original body.
    """
    root = ET.fromstring(f"<document>{text}</document>")
    _fold_controls(root)
    return root

class DocumentAssembler:
    """Builds the tagged prompt document from already-loaded inputs."""

    def __init__(self, token_counter: Callable[[str], int] = count_tokens):
        self.token_counter = token_counter

    def assemble(self,
                 system_prompt: str,
                 instruction: str,
                 files: List[FileEntry],
                 file_tree: Optional[str] = None,
                 remotes: Optional[List[RemoteSource]] = None,
                 terminal_command: str = "",
                 terminal_output: str = "") -> DocumentResult:
        ordered = sorted(files, key=lambda e: e.rel_path)
        included_remotes = [r for r in (remotes or []) if r.include and r.content is not None]

        parts = [_section("system_prompt", system_prompt), _section("instruction", instruction)]
        if file_tree is not None:
            parts.append(_section("file_tree", file_tree))

        code_lines = ["<code>"]
        for entry in ordered:
            content = entry.content
            if content is None:
                logger.warning(f"Content for {entry.rel_path} was not loaded before assembly.")
                content = MISSING_CONTENT_MARKER
            code_lines.append(f'<file path="{escape_attr(entry.rel_path)}">{wrap_cdata(content)}</file>')
        code_lines.append("</code>")
        parts.append("\n".join(code_lines))

        if included_remotes:
            remote_lines = ["<remote>"]
            for source in included_remotes:
                remote_lines.append(f'<source url="{escape_attr(source.url)}">{wrap_cdata(source.content)}</source>')
            remote_lines.append("</remote>")
            parts.append("\n".join(remote_lines))

        if terminal_command or terminal_output:
            parts.append(_section("terminal_command", terminal_command))
            parts.append(_section("terminal_output", terminal_output))

        # Repeated on purpose so the instruction also follows the bulk context
        parts.append(_section("instruction", instruction))

        text = "\n\n".join(parts) + "\n"
        result = DocumentResult(
            text=text,
            token_count=self.token_counter(text),
            estimated_tokens=estimate_tokens(text),
            file_count=len(ordered),
            remote_count=len(included_remotes),
        )
        logger.info(f"Document assembled: {result.file_count} files, {result.remote_count} remote sources, {result.token_count} tokens.")
        return result
