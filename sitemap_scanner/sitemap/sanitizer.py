"""
Best-effort repair of malformed sitemap XML.

This is not a validator. It only removes the problems most often seen in
real sitemaps so the following parse has a better chance to succeed.
"""

import re
from typing import Union


NULL_CHARS = re.compile("\x00")

# <tag attrs/> including namespaced names such as <xhtml:link .../>
SELF_CLOSING_TAG = re.compile(r"<([A-Za-z_][\w:.-]*)([^<>]*?)\s*/>")

# Anything outside the XML 1.0 Char production
INVALID_XML_CHARS = re.compile(
    "[^\x09\x0A\x0D\x20-\uD7FF\uE000-\uFFFD\U00010000-\U0010FFFF]"
)

# Opening tags only; closing tags, declarations and comments are left alone
OPEN_TAG = re.compile(r"<([A-Za-z_][\w:.-]*)(\s[^<>]*)?>")

# One attribute inside a tag, with its value when present
ATTRIBUTE = re.compile(
    r"""(\s+)([A-Za-z_:][\w:.-]*)(\s*=\s*(?:"[^"]*"|'[^']*'|[^\s"'=<>`]+))?"""
)

XMLNS_DECLARATION = re.compile(r"""\s+(xmlns(?::[\w.-]+)?\s*=\s*(?:"[^"]*"|'[^']*'))""")

STRAY_AMPERSAND = re.compile(r"&(?!(?:[A-Za-z][A-Za-z0-9]*|#[0-9]+|#[xX][0-9A-Fa-f]+);)")


def strip_null_chars(text: str) -> str:
    return NULL_CHARS.sub("", text)


def expand_self_closing_tags(text: str) -> str:
    return SELF_CLOSING_TAG.sub(r"<\1\2></\1>", text)


def strip_invalid_chars(text: str) -> str:
    return INVALID_XML_CHARS.sub("", text)


def _fill_attribute(match: re.Match) -> str:
    if match.group(3) is None:
        return f'{match.group(1)}{match.group(2)}=""'
    return match.group(0)


def fill_bare_attributes(text: str) -> str:
    """Give attributes without a value an empty one: <a b> -> <a b="">."""
    def repair(tag: re.Match) -> str:
        attrs = tag.group(2)
        if not attrs:
            return tag.group(0)
        return f"<{tag.group(1)}{ATTRIBUTE.sub(_fill_attribute, attrs)}>"

    return OPEN_TAG.sub(repair, text)


def collapse_duplicate_xmlns(text: str) -> str:
    """Drop repeated identical xmlns declarations within one tag."""
    def repair(tag: re.Match) -> str:
        attrs = tag.group(2)
        if not attrs or "xmlns" not in attrs:
            return tag.group(0)
        seen = set()

        def dedupe(decl: re.Match) -> str:
            key = re.sub(r"\s+", "", decl.group(1))
            if key in seen:
                return ""
            seen.add(key)
            return decl.group(0)

        return f"<{tag.group(1)}{XMLNS_DECLARATION.sub(dedupe, attrs)}>"

    return OPEN_TAG.sub(repair, text)


def escape_stray_ampersands(text: str) -> str:
    return STRAY_AMPERSAND.sub("&amp;", text)


def sanitize_xml(content: Union[str, bytes]) -> Union[str, bytes]:
    """
    Repair common sitemap XML defects.

    Returns the same type it was given; bytes are treated as UTF-8.
    """
    if isinstance(content, bytes):
        text = content.decode("utf-8", errors="replace")
        return _sanitize(text).encode("utf-8")
    return _sanitize(content)


def _sanitize(text: str) -> str:
    text = strip_null_chars(text)
    text = expand_self_closing_tags(text)
    text = strip_invalid_chars(text)
    text = fill_bare_attributes(text)
    text = collapse_duplicate_xmlns(text)
    text = escape_stray_ampersands(text)
    return text
