"""
Content Rewriter
================

Rule-driven rewriting of entry bodies, scoped by entry URL.

A rule set is a comma separated list of rule names, some of which take
quoted arguments:

    add_image_title,remove(".ads, .share"),replace("http://"|"https://")

Rules are applied left to right. A rule that fails leaves the content as it
was before that rule and the remaining rules still run.
"""

import re
from typing import Callable, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlparse

from bs4 import BeautifulSoup, NavigableString

from ..utils.logging import get_logger_for_component
from ..utils.exceptions import RewriteError
from ..utils.validators import URLValidator


# Rules applied when a feed has none configured
PREDEFINED_REWRITE_RULES = {
    "abstrusegoose.com": "add_image_title",
    "amazingsuperpowers.com": "add_image_title",
    "monkeyuser.com": "add_image_title",
    "smbc-comics.com": "add_image_title",
    "thedoghousediaries.com": "add_image_title",
    "xkcd.com": "add_image_title",
    "youtube.com": "add_youtube_video",
    "m.youtube.com": "add_youtube_video",
}

DYNAMIC_IMAGE_ATTRIBUTES = (
    "data-src",
    "data-original",
    "data-orig",
    "data-url",
    "data-orig-file",
    "data-large-file",
    "data-medium-file",
    "data-lazy-src",
)

DYNAMIC_SRCSET_ATTRIBUTES = ("data-srcset", "data-lazy-srcset")

TEXT_LINK_PATTERN = re.compile(r"(?<![\"'=])\b(https?://[^\s<>\"']+[^\s<>\"'.,;:!?)\]])")
YOUTUBE_HOSTS = {"youtube.com", "m.youtube.com"}


def parse_rules(rules: Optional[str]) -> List[Tuple[str, List[str]]]:
    """Split a rule string into (name, arguments) pairs.

    Commas inside parentheses or quotes do not separate rules; arguments are
    separated by ``|`` and may be double-quoted.
    """
    if not rules:
        return []

    parsed = []
    current = []
    depth = 0
    in_quotes = False

    for char in rules:
        if char == '"':
            in_quotes = not in_quotes
        elif not in_quotes and char == "(":
            depth += 1
        elif not in_quotes and char == ")":
            depth = max(depth - 1, 0)
        elif char in ",\n" and depth == 0 and not in_quotes:
            parsed.append("".join(current))
            current = []
            continue
        current.append(char)
    parsed.append("".join(current))

    result = []
    for raw_rule in parsed:
        raw_rule = raw_rule.strip()
        if not raw_rule:
            continue
        if "(" in raw_rule and raw_rule.endswith(")"):
            name, _, raw_args = raw_rule.partition("(")
            result.append((name.strip(), _split_arguments(raw_args[:-1])))
        else:
            result.append((raw_rule, []))
    return result


def _split_arguments(raw_args: str) -> List[str]:
    args = []
    current = []
    in_quotes = False
    for char in raw_args:
        if char == '"':
            in_quotes = not in_quotes
            continue
        if char == "|" and not in_quotes:
            args.append("".join(current))
            current = []
            continue
        current.append(char)
    args.append("".join(current))
    return args


def _dollar_group_references(replacement: str) -> str:
    """Translate ``$1`` / ``${name}`` group references to Python syntax."""
    escaped = replacement.replace("\\", "\\\\")
    return re.sub(r"\$\{?(\w+)\}?", r"\\g<\1>", escaped)


class ContentRewriter:
    """Applies rewrite rules to entry content."""

    def __init__(self, predefined_rules: Optional[Dict[str, str]] = None):
        self.logger = get_logger_for_component("rewriter")
        self.parser = "html.parser"
        self.predefined_rules = (
            PREDEFINED_REWRITE_RULES if predefined_rules is None else predefined_rules
        )
        self._rules: Dict[str, Callable[..., str]] = {
            "add_image_title": self._add_image_title,
            "add_mailto_subject": self._add_mailto_subject,
            "add_dynamic_image": self._add_dynamic_image,
            "add_youtube_video": self._add_youtube_video,
            "add_pdf_download_link": self._add_pdf_download_link,
            "nl2br": self._nl2br,
            "convert_text_link": self._convert_text_link,
            "replace": self._replace,
            "remove": self._remove,
        }

    @property
    def supported_rules(self) -> List[str]:
        return sorted(self._rules)

    def rules_for(self, url: str, rules: Optional[str]) -> str:
        """Configured rules, or the predefined rules of the URL's domain."""
        if rules and rules.strip():
            return rules
        return self.predefined_rules.get(URLValidator.domain(url), "")

    def rewrite(self, url: str, content: str, rules: Optional[str]) -> str:
        """
        Rewrite content with the given rule set.

        Args:
            url: Entry URL; some rules depend on it
            content: Entry body
            rules: Rule set; the domain's predefined rules apply when empty

        Returns:
            Rewritten content
        """
        rule_set = self.rules_for(url, rules)
        content = content or ""

        for name, args in parse_rules(rule_set):
            handler = self._rules.get(name)
            if handler is None:
                self.logger.debug(f"Ignoring unknown rewrite rule {name!r} for {url}")
                continue

            try:
                content = handler(url, content, *args)
            except Exception as e:
                error = RewriteError(f"Rule {name!r} failed: {e}", rule=name, entry_url=url)
                self.logger.warning(str(error), extra=error.to_dict())

        return content

    def _soup(self, content: str) -> BeautifulSoup:
        return BeautifulSoup(content, self.parser)

    def _add_image_title(self, url: str, content: str) -> str:
        soup = self._soup(content)
        changed = False

        for img in soup.find_all("img", src=True, title=True):
            title = img.get("title", "").strip()
            if not title:
                continue

            figure = soup.new_tag("figure")
            new_img = soup.new_tag("img", src=img["src"], alt=img.get("alt", ""))
            caption = soup.new_tag("figcaption")
            paragraph = soup.new_tag("p")
            paragraph.string = title
            caption.append(paragraph)
            figure.append(new_img)
            figure.append(caption)
            img.replace_with(figure)
            changed = True

        return str(soup) if changed else content

    def _add_mailto_subject(self, url: str, content: str) -> str:
        soup = self._soup(content)
        changed = False

        for link in soup.find_all("a", href=True):
            href = link["href"]
            if not href.lower().startswith("mailto:"):
                continue

            address, _, query = href.partition("?")
            subject = parse_qs(query).get("subject", [""])[0].strip()
            if not subject:
                continue

            link["href"] = address
            quote = soup.new_tag("blockquote")
            quote.string = subject
            link.insert_after(quote)
            changed = True

        return str(soup) if changed else content

    def _add_dynamic_image(self, url: str, content: str) -> str:
        soup = self._soup(content)
        changed = False

        for img in soup.find_all("img"):
            for attribute in DYNAMIC_IMAGE_ATTRIBUTES:
                value = (img.get(attribute) or "").strip()
                if value:
                    img["src"] = value
                    changed = True
                    break

            for attribute in DYNAMIC_SRCSET_ATTRIBUTES:
                value = (img.get(attribute) or "").strip()
                if value:
                    img["srcset"] = value
                    changed = True
                    break

        return str(soup) if changed else content

    def _add_youtube_video(self, url: str, content: str) -> str:
        parsed = urlparse(url)
        if URLValidator.domain(url) not in YOUTUBE_HOSTS or parsed.path != "/watch":
            return content

        video_id = parse_qs(parsed.query).get("v", [""])[0]
        if not re.fullmatch(r"[\w-]{6,20}", video_id):
            return content

        player = (
            '<iframe width="650" height="350" frameborder="0" '
            f'src="https://www.youtube-nocookie.com/embed/{video_id}" allowfullscreen></iframe>'
        )
        return f"{player}<br>{content}"

    def _add_pdf_download_link(self, url: str, content: str) -> str:
        if not urlparse(url).path.lower().endswith(".pdf"):
            return content
        return f'<a href="{url}">PDF</a><br>{content}'

    def _nl2br(self, url: str, content: str) -> str:
        return content.replace("\r\n", "\n").replace("\n", "<br>")

    def _convert_text_link(self, url: str, content: str) -> str:
        soup = self._soup(content)
        changed = False

        for text in list(soup.find_all(string=True)):
            if not isinstance(text, NavigableString) or text.find_parent("a"):
                continue
            if not TEXT_LINK_PATTERN.search(text):
                continue

            fragment = self._soup(
                TEXT_LINK_PATTERN.sub(
                    lambda m: f'<a href="{m.group(1)}">{m.group(1)}</a>',
                    str(text).replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;"),
                )
            )
            text.replace_with(*list(fragment.contents))
            changed = True

        return str(soup) if changed else content

    def _replace(self, url: str, content: str, pattern: str = "", replacement: str = "") -> str:
        if not pattern:
            raise RewriteError("replace() requires a pattern", rule="replace")
        return re.sub(pattern, _dollar_group_references(replacement), content)

    def _remove(self, url: str, content: str, selector: str = "") -> str:
        if not selector.strip():
            raise RewriteError("remove() requires a CSS selector", rule="remove")

        soup = self._soup(content)
        matches = soup.select(selector)
        if not matches:
            return content

        for element in matches:
            element.decompose()
        return str(soup)


def rewrite_content(url: str, content: str, rules: Optional[str]) -> str:
    """Quick function to rewrite content with a rule set."""
    return ContentRewriter().rewrite(url, content, rules)
