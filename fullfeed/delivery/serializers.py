"""
Feed Serializers
================

Render an ``AssembledFeed`` as JSON or RSS 2.0.

The JSON document mirrors the source feed header and lists each item with
its full content, representative image and category. The RSS document
carries the full content in ``content:encoded`` and the image as an
``enclosure``.
"""

import json
import mimetypes
from datetime import datetime, timezone
from email.utils import format_datetime
from typing import Any, Dict, Optional
from xml.etree import ElementTree as ET

from ..config.settings import OutputFormat
from ..models import AssembledFeed, ExtractedItem
from ..utils.exceptions import SerializationError

CONTENT_NAMESPACE = "http://purl.org/rss/1.0/modules/content/"
ATOM_NAMESPACE = "http://www.w3.org/2005/Atom"

ET.register_namespace("content", CONTENT_NAMESPACE)
ET.register_namespace("atom", ATOM_NAMESPACE)

RSS_TITLE_SUFFIX = " - Full Text"
GENERATOR = "fullfeed"

CONTENT_TYPES = {
    OutputFormat.JSON: "application/json; charset=utf-8",
    OutputFormat.RSS: "application/rss+xml; charset=utf-8",
}


def _iso(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def _rfc822(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return format_datetime(value)


def item_to_dict(item: ExtractedItem) -> Dict[str, Any]:
    return {
        "id": item.id,
        "title": item.title,
        "link": item.link,
        "guid": item.id,
        "published": _iso(item.created_at),
        "updated": _iso(item.updated_at),
        "description": item.summary,
        "content": item.content,
        "image": item.image or "",
        "images": list(item.images),
        "category": item.category,
        "author": item.author or "",
    }


def to_json(feed: AssembledFeed) -> str:
    """Indented JSON document for ``feed``."""
    document = {
        "feed_title": feed.title,
        "feed_link": feed.link,
        "feed_description": feed.description,
        "items_returned": len(feed.items),
        "items_skipped": feed.items_skipped,
        "items_failed": feed.items_failed,
        "generated_at": _iso(feed.generated_at),
        "items": [item_to_dict(item) for item in feed.items],
    }
    return json.dumps(document, ensure_ascii=False, indent=2)


def to_rss(feed: AssembledFeed) -> str:
    """RSS 2.0 document for ``feed``."""
    rss = ET.Element("rss", {"version": "2.0"})
    channel = ET.SubElement(rss, "channel")

    title = f"{feed.title}{RSS_TITLE_SUFFIX}" if feed.title else RSS_TITLE_SUFFIX.strip(" -")
    ET.SubElement(channel, "title").text = title
    ET.SubElement(channel, "link").text = feed.link
    ET.SubElement(channel, "description").text = f"Full-text version of {feed.title or feed.link}"
    ET.SubElement(channel, "lastBuildDate").text = _rfc822(feed.generated_at)
    ET.SubElement(channel, "generator").text = GENERATOR

    if feed.image_url:
        image = ET.SubElement(channel, "image")
        ET.SubElement(image, "url").text = feed.image_url
        ET.SubElement(image, "title").text = title
        ET.SubElement(image, "link").text = feed.link

    for item in feed.items:
        _append_item(channel, item)

    body = ET.tostring(rss, encoding="unicode")
    return '<?xml version="1.0" encoding="UTF-8"?>\n' + body


def _append_item(channel: ET.Element, item: ExtractedItem) -> None:
    element = ET.SubElement(channel, "item")
    ET.SubElement(element, "title").text = item.title
    ET.SubElement(element, "link").text = item.link
    ET.SubElement(element, "guid", {"isPermaLink": "false"}).text = item.id
    ET.SubElement(element, "description").text = item.summary
    ET.SubElement(element, f"{{{CONTENT_NAMESPACE}}}encoded").text = item.content

    if item.created_at is not None:
        ET.SubElement(element, "pubDate").text = _rfc822(item.created_at)
    if item.category:
        ET.SubElement(element, "category").text = item.category
    if item.author:
        ET.SubElement(element, "author").text = item.author

    if item.image:
        mime_type, _ = mimetypes.guess_type(item.image.split("?", 1)[0])
        ET.SubElement(element, "enclosure", {
            "url": item.image,
            "type": mime_type if mime_type and mime_type.startswith("image/") else "image/jpeg",
            "length": "0",
        })


def serialize(feed: AssembledFeed, output_format: OutputFormat) -> str:
    """Render ``feed`` in ``output_format``.

    Raises:
        SerializationError: If the feed cannot be rendered
    """
    try:
        if output_format == OutputFormat.RSS:
            return to_rss(feed)
        if output_format == OutputFormat.JSON:
            return to_json(feed)
    except (TypeError, ValueError) as e:
        raise SerializationError(
            f"Failed to render feed as {output_format.value}: {e}",
            output_format=output_format.value,
        ) from e

    raise SerializationError(
        f"Unsupported output format: {output_format!r}", output_format=str(output_format)
    )


def content_type_for(output_format: OutputFormat) -> str:
    return CONTENT_TYPES[output_format]
