"""
HTML Sanitizer
==============

Allow-list HTML sanitizer applied to every entry body before it is stored.

This module provides:
- Removal of dangerous elements together with their content
- Unwrapping of unknown elements (their text is kept)
- Per-element attribute allow-lists and URL scheme checks
- Relative URL resolution against the entry URL
- Safe defaults on links, images and embedded players
"""

import html
from typing import Optional
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup, Comment
from bs4.element import CData, Declaration, Doctype, ProcessingInstruction

from ..utils.logging import get_logger_for_component
from ..utils.validators import URLValidator


class HTMLSanitizer:
    """
    HTML sanitizer keeping safe markup.

    Unlike plain-text extraction, the output is still HTML: formatting,
    links, images and trusted video players survive, everything able to run
    code or load untrusted frames does not.
    """

    # Removed including content
    DANGEROUS_ELEMENTS = {
        "script",
        "style",
        "noscript",
        "template",
        "object",
        "embed",
        "applet",
        "form",
        "input",
        "button",
        "select",
        "textarea",
        "meta",
        "link",
        "base",
        "head",
        "title",
        "frame",
        "frameset",
        "svg",
        "math",
        "canvas",
    }

    SAFE_ELEMENTS = {
        "a", "abbr", "acronym", "audio", "b", "bdi", "bdo", "blockquote", "br",
        "caption", "cite", "code", "col", "colgroup", "dd", "del", "details",
        "dfn", "div", "dl", "dt", "em", "figcaption", "figure", "h1", "h2",
        "h3", "h4", "h5", "h6", "hr", "i", "iframe", "img", "ins", "kbd", "li",
        "mark", "ol", "p", "picture", "pre", "q", "rp", "rt", "ruby", "s",
        "samp", "small", "source", "span", "strike", "strong", "sub",
        "summary", "sup", "table", "tbody", "td", "tfoot", "th", "thead",
        "time", "tr", "u", "ul", "var", "video", "wbr",
    }

    SAFE_ATTRIBUTES = {
        "a": ["href", "title", "id"],
        "abbr": ["title"],
        "acronym": ["title"],
        "audio": ["src", "controls"],
        "blockquote": ["cite"],
        "col": ["span"],
        "colgroup": ["span"],
        "del": ["cite", "datetime"],
        "iframe": ["src", "width", "height", "frameborder", "allowfullscreen"],
        "img": ["src", "alt", "title", "width", "height", "srcset", "sizes"],
        "ins": ["cite", "datetime"],
        "ol": ["start", "reversed", "type"],
        "q": ["cite"],
        "source": ["src", "type", "srcset", "sizes", "media"],
        "td": ["rowspan", "colspan", "headers"],
        "th": ["rowspan", "colspan", "headers", "scope"],
        "time": ["datetime"],
        "video": ["src", "poster", "width", "height", "controls"],
    }

    URL_ATTRIBUTES = {"href", "src", "cite", "poster"}

    TRUSTED_IFRAME_DOMAINS = {
        "youtube.com",
        "youtube-nocookie.com",
        "player.vimeo.com",
        "dailymotion.com",
        "w.soundcloud.com",
        "bandcamp.com",
        "player.twitch.tv",
        "open.spotify.com",
    }

    def __init__(self):
        self.logger = get_logger_for_component("sanitizer")
        self.parser = "html.parser"

    def sanitize(self, base_url: Optional[str], content: Optional[str]) -> str:
        """
        Sanitize an HTML fragment.

        Args:
            base_url: URL of the entry, used to resolve relative links
            content: HTML fragment

        Returns:
            Safe HTML; escaped text if the fragment cannot be processed
        """
        if not content or not content.strip():
            return ""

        try:
            soup = BeautifulSoup(content, self.parser)

            self._remove_non_content_nodes(soup)

            for element in list(soup.find_all(True)):
                if element.decomposed:
                    continue
                self._sanitize_element(element, base_url)

            return soup.decode(formatter="minimal").strip()

        except Exception as e:
            # Never hand back markup that has not been through the allow-list
            self.logger.error(f"Failed to sanitize content of {base_url}: {e}")
            return html.escape(content)

    def _remove_non_content_nodes(self, soup: BeautifulSoup) -> None:
        """Remove comments, CDATA, declarations and processing instructions."""
        for node in soup.find_all(
            string=lambda text: isinstance(
                text, (Comment, CData, ProcessingInstruction, Declaration, Doctype)
            )
        ):
            node.extract()

    def _sanitize_element(self, element, base_url: Optional[str]) -> None:
        name = element.name.lower()

        if name in self.DANGEROUS_ELEMENTS:
            element.decompose()
            return

        if name not in self.SAFE_ELEMENTS:
            element.unwrap()
            return

        self._clean_attributes(element, name, base_url)

        if name == "iframe":
            if not self._is_trusted_iframe(element.get("src")):
                element.decompose()
                return
            element["sandbox"] = "allow-scripts allow-same-origin allow-popups allow-popups-to-escape-sandbox"
            element["loading"] = "lazy"

        elif name == "img":
            if not element.get("src") and not element.get("srcset"):
                element.decompose()
                return
            element["loading"] = "lazy"

        elif name == "a" and element.get("href"):
            element["rel"] = "noopener noreferrer"
            element["target"] = "_blank"
            element["referrerpolicy"] = "no-referrer"

    def _clean_attributes(self, element, name: str, base_url: Optional[str]) -> None:
        safe_attrs = self.SAFE_ATTRIBUTES.get(name, [])

        for attr_name in list(element.attrs):
            if attr_name.lower() not in safe_attrs:
                del element[attr_name]
                continue

            value = element.get(attr_name)
            if isinstance(value, list):
                value = " ".join(value)

            if attr_name in self.URL_ATTRIBUTES:
                resolved = self._safe_url(value, base_url)
                if resolved is None:
                    del element[attr_name]
                else:
                    element[attr_name] = resolved

            elif attr_name == "srcset":
                resolved = self._safe_srcset(value, base_url)
                if resolved is None:
                    del element[attr_name]
                else:
                    element[attr_name] = resolved

    def _safe_url(self, value: Optional[str], base_url: Optional[str]) -> Optional[str]:
        """Return the resolved URL, or None when it must be dropped."""
        value = (value or "").strip()
        if not value or URLValidator.is_unsafe_url(value):
            return None
        if value.startswith("#"):
            return value
        if base_url and not urlparse(value).scheme:
            value = urljoin(base_url, value)
        return value

    def _safe_srcset(self, value: Optional[str], base_url: Optional[str]) -> Optional[str]:
        candidates = []
        for candidate in (value or "").split(","):
            parts = candidate.strip().split()
            if not parts:
                continue
            url = self._safe_url(parts[0], base_url)
            if url is None:
                return None
            candidates.append(" ".join([url] + parts[1:]))
        return ", ".join(candidates) if candidates else None

    def _is_trusted_iframe(self, src: Optional[str]) -> bool:
        if not src:
            return False
        parsed = urlparse(src)
        if parsed.scheme not in ("http", "https"):
            return False
        host = URLValidator.domain(src)
        return any(
            host == domain or host.endswith("." + domain)
            for domain in self.TRUSTED_IFRAME_DOMAINS
        )


def sanitize_html(base_url: Optional[str], content: Optional[str]) -> str:
    """Quick function to sanitize an HTML fragment."""
    return HTMLSanitizer().sanitize(base_url, content)
