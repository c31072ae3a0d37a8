"""
RSS 2.0 serialization of an OutputFeed using a Jinja2 template.

The template declares the content, media, dc, atom and webfeeds namespaces
and is rendered with XML autoescaping, so titles and HTML bodies are always
emitted as escaped character data.
"""

from __future__ import annotations

from pathlib import Path
import re

from jinja2 import Environment, FileSystemLoader, select_autoescape

from ..core.types import OutputFeed

GENERATOR = "Syndication Junction"

# Characters that are not allowed anywhere in an XML 1.0 document.
_INVALID_XML_CHARS = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\ufffe\uffff]")


def _clean(value: object) -> str:
    if value is None:
        return ""
    return _INVALID_XML_CHARS.sub("", str(value))


def _environment() -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(Path(__file__).parent / "templates")),
        autoescape=select_autoescape(["xml"]),
    )
    env.filters["clean"] = _clean
    return env


def render_rss(feed: OutputFeed, self_link: str | None = None) -> str:
    """Serialize ``feed`` to an RSS 2.0 document.

    lastBuildDate is the newest item's date rather than the current time, so
    the same feed always serializes to the same bytes.

    Args:
        feed: Rendered feed model
        self_link: Public URL of the feed, emitted as atom:link rel="self"

    Returns:
        The XML document as a string
    """
    template = _environment().get_template("rss.xml")
    last_build_date = next((item.pub_date for item in feed.items if item.pub_date), None)
    return template.render(
        feed=feed,
        self_link=self_link,
        last_build_date=last_build_date,
        generator=GENERATOR,
    ) + "\n"


def write_rss(feed: OutputFeed, output_path: Path, self_link: str | None = None) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(render_rss(feed, self_link=self_link), encoding="utf-8")
