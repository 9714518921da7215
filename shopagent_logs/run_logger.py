"""
Run Logger - one markdown file per shopping task

Each task phase becomes a section, state transitions and product lists are
recorded as they happen, and a navigation list at the top links every phase.
"""

import json
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

NAV_MARKER = "## Navigation\n\n"
PRODUCT_COLUMNS = ["#", "Title", "Price", "RAM", "Battery", "Availability"]


def _anchor(title: str) -> str:
    slug = re.sub(r"[^a-z0-9\s_-]", "", title.strip().lower())
    return re.sub(r"\s+", "-", slug)


def _cell(value: Any) -> str:
    return str(value).replace("|", "\\|")


def _markdown_table(headers: Sequence[str], rows: Sequence[Sequence[Any]]) -> str:
    cells = [[_cell(c) for c in list(row)[:len(headers)]] for row in rows]
    for row in cells:
        row.extend([""] * (len(headers) - len(row)))
    widths = [max([len(h)] + [len(row[i]) for row in cells]) for i, h in enumerate(headers)]

    def line(values):
        return "| " + " | ".join(v.ljust(widths[i]) for i, v in enumerate(values)) + " |"

    out = [line(headers), "|" + "|".join("-" * (w + 2) for w in widths) + "|"]
    out.extend(line(row) for row in cells)
    return "\n".join(out) + "\n\n"


def _product_row(index: int, product: Any) -> List[Any]:
    data = product if isinstance(product, dict) else product.to_dict()
    attrs = data.get("attributes") or {}
    return [
        index,
        str(data.get("title", ""))[:60],
        data.get("price_text") or "",
        attrs.get("ram") or "",
        attrs.get("battery") or "",
        data.get("availability") or "",
    ]


class RunLogger:
    """
    Markdown log of a single shopping run.

    Usage:
        run_log = RunLogger(
            instruction="samsung phone under 20k with 6gb ram",
            url="https://www.amazon.in/",
            command_line='shopagent "samsung phone under 20k with 6gb ram"'
        )

        run_log.log_heading("SEARCHING")
        run_log.log_transition("PARSING_INTENT", "SEARCHING", "query 'samsung phone'")
        run_log.log_products(products, "Search results")
        run_log.finalize(success=True, duration_ms=5400)
    """

    def __init__(
        self,
        instruction: str,
        url: Optional[str],
        command_line: Optional[str] = None,
        log_dir: str = "./logs",
        session_id: Optional[str] = None
    ):
        """
        Args:
            instruction: The shopping request
            url: Page the browser starts on
            command_line: CLI invocation, recorded for reproduction
            log_dir: Where run-<session>.md is written
            session_id: File suffix, a timestamp when omitted
        """
        self.session_id = session_id or datetime.now().strftime('%Y%m%d-%H%M%S')
        self.dir = Path(log_dir)
        self.dir.mkdir(parents=True, exist_ok=True)
        self.path = self.dir / f'run-{self.session_id}.md'
        self._sections: List[Tuple[str, str]] = []

        header = [f"# shopagent run {self.session_id}\n\n", NAV_MARKER, "_no phases yet_\n\n"]
        if command_line:
            header.append(f"```bash\n{command_line}\n```\n\n")
        if url:
            header.append(f"- **Start URL**: {url}\n")
        if instruction:
            header.append(f"- **Request**: {instruction}\n\n")
        self.path.write_text("".join(header), encoding='utf-8')

    def _append(self, text: str):
        with open(self.path, 'a', encoding='utf-8') as f:
            f.write(text)

    def log_heading(self, text: str):
        """Start a phase section and link it from the navigation list."""
        self._append(f"\n---\n\n## {text}\n\n")
        self._sections.append((text, _anchor(text)))
        self._refresh_navigation()

    def log_text(self, text: str):
        self._append(f"{text}\n\n")

    def log_kv(self, key: str, value: Any):
        self._append(f"- {key}: {value}\n")

    def log_code(self, lang: str, code: str):
        self._append(f"```{lang}\n{code}\n```\n\n")

    def log_json(self, data: Any, title: str = "Data"):
        body = json.dumps(data, indent=2, ensure_ascii=False, default=str)
        self._append(f"### {title}\n\n```json\n{body}\n```\n\n")

    def log_table(self, headers: List[str], rows: List[List[Any]], title: str = ""):
        if title:
            self._append(f"### {title}\n\n")
        if headers and rows:
            self._append(_markdown_table(headers, rows))

    def log_products(self, products: Iterable[Any], title: str = "Products", limit: int = 20):
        """Product table (``Product`` objects or their dicts), first ``limit`` rows."""
        rows = []
        for index, product in enumerate(products):
            if index >= limit:
                break
            rows.append(_product_row(index, product))
        if rows:
            self.log_table(PRODUCT_COLUMNS, rows, title)
        else:
            self.log_text(f"{title}: none")

    def log_transition(self, from_status: str, to_status: str, reason: str = ""):
        suffix = f" ({reason})" if reason else ""
        self._append(f"**{from_status} → {to_status}**{suffix}\n\n")

    def log_error(self, message: str):
        self._append(f"❌ **ERROR:** {message}\n\n")

    def log_warning(self, message: str):
        self._append(f"⚠️ **WARNING:** {message}\n\n")

    def finalize(self, success: bool, duration_ms: int = 0, error: Optional[str] = None):
        """Close the run with its outcome, duration and failure reason."""
        outcome = "✅ COMPLETED" if success else "❌ FAILED"
        summary = f"\n---\n\n## Summary\n\n**Status:** {outcome}\n**Duration:** {duration_ms}ms\n"
        if error:
            summary += f"\n**Error:** {error}\n"
        self._append(summary + "\n")

    def _refresh_navigation(self):
        try:
            content = self.path.read_text(encoding='utf-8')
        except OSError as e:
            logger.debug(f"Run log navigation not updated: {e}")
            return
        start = content.find(NAV_MARKER)
        if start == -1:
            return
        start += len(NAV_MARKER)
        end = content.find("\n\n", start)
        if end == -1:
            return
        links = "\n".join(f"- [{title}](#{anchor})" for title, anchor in self._sections)
        self.path.write_text(content[:start] + links + content[end:], encoding='utf-8')

    @property
    def log_path(self) -> str:
        return str(self.path)


def create_run_logger(
    instruction: str,
    url: Optional[str] = None,
    command_line: Optional[str] = None,
    log_dir: str = "./logs"
) -> RunLogger:
    return RunLogger(instruction, url, command_line=command_line, log_dir=log_dir)
