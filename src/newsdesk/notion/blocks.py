"""
Typed view over Notion block objects.

The sync engine stores blocks exactly as Notion returns them. This module
turns a stored block list into a closed set of variants for readers of the
API. Block types outside the known set are kept as kind "unknown" with the
raw payload attached, so nothing is lost when Notion adds new types.
"""
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

KNOWN_KINDS = {
    "paragraph",
    "heading_1",
    "heading_2",
    "heading_3",
    "bulleted_list_item",
    "numbered_list_item",
    "quote",
    "divider",
    "image",
}


@dataclass
class RichTextSpan:
    plain_text: str
    bold: bool = False
    italic: bool = False
    strikethrough: bool = False
    underline: bool = False
    code: bool = False
    href: Optional[str] = None


@dataclass
class Block:
    id: str
    kind: str
    rich_text: List[RichTextSpan] = field(default_factory=list)
    url: Optional[str] = None  # image blocks only
    raw: Optional[Dict[str, Any]] = None  # set for kind == "unknown"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def parse_rich_text(spans: Any) -> List[RichTextSpan]:
    """Parse a Notion rich_text array. Non-list input yields []."""
    if not isinstance(spans, list):
        return []
    parsed = []
    for span in spans:
        if not isinstance(span, dict):
            continue
        annotations = span.get("annotations") or {}
        parsed.append(
            RichTextSpan(
                plain_text=span.get("plain_text", ""),
                bold=bool(annotations.get("bold")),
                italic=bool(annotations.get("italic")),
                strikethrough=bool(annotations.get("strikethrough")),
                underline=bool(annotations.get("underline")),
                code=bool(annotations.get("code")),
                href=span.get("href"),
            )
        )
    return parsed


def _file_url(payload: Dict[str, Any]) -> Optional[str]:
    # Notion file objects are either {"type": "external", "external": {"url"}}
    # or {"type": "file", "file": {"url", "expiry_time"}}
    kind = payload.get("type")
    if kind in ("external", "file"):
        return (payload.get(kind) or {}).get("url")
    return None


def parse_block(raw: Dict[str, Any]) -> Block:
    block_id = raw.get("id", "")
    kind = raw.get("type", "")
    if kind not in KNOWN_KINDS:
        return Block(id=block_id, kind="unknown", raw=raw)

    payload = raw.get(kind) or {}
    if kind == "divider":
        return Block(id=block_id, kind=kind)
    if kind == "image":
        return Block(
            id=block_id,
            kind=kind,
            rich_text=parse_rich_text(payload.get("caption")),
            url=_file_url(payload),
        )
    return Block(id=block_id, kind=kind, rich_text=parse_rich_text(payload.get("rich_text")))


def parse_blocks(raws: List[Dict[str, Any]]) -> List[Block]:
    return [parse_block(raw) for raw in raws if isinstance(raw, dict)]
