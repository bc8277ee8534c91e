"""Templated mail formatting: greeting, markdown body and footer.

:func:`format_mail` wraps raw markdown text with a localized greeting and
footer, then produces two bodies from the same working text:

- HTML, via a markdown renderer followed by an HTML cleaner;
- plaintext, by stripping tags and turning ``[label](url)`` links into
  ``label (url)``.

Renderer and cleaner are plain callables so applications can plug in their
own engines; the defaults use the ``markdown`` package and leave the HTML
untouched.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import markdown

from mailcraft.config import MailSettings
from mailcraft.i18n import MessageCatalog

if TYPE_CHECKING:
    from mailcraft.i18n import Translator

log = logging.getLogger(__name__)

#: Markdown extensions that render without CSS class dependencies.
EMAIL_MARKDOWN_EXTENSIONS = ("fenced_code", "nl2br", "sane_lists")

GREETING_ID = "email.greeting"
FOOTER_ID = "email.footer"

# User reference tags reduce to the user name in plaintext.
_USER_TAG_PATTERN = re.compile(
    r"""<(?:user|lj)\b[^>]*?\b(?:name|user)\s*=\s*["']?([\w-]+)["']?[^>]*>""",
    re.IGNORECASE,
)
_TAG_PATTERN = re.compile(r"<[^>]*>")
_MARKDOWN_LINK_PATTERN = re.compile(r"\[(.*?)\]\(")


@runtime_checkable
class MarkdownRenderer(Protocol):
    """Render markdown text to HTML."""

    def __call__(self, text: str) -> str:
        """Return the HTML rendering of ``text``."""
        ...


@runtime_checkable
class HtmlCleaner(Protocol):
    """Normalize rendered HTML (sanitization, custom tag expansion)."""

    def __call__(self, html: str) -> str:
        """Return the cleaned HTML."""
        ...


def render_markdown(text: str) -> str:
    """Render markdown to HTML with email-friendly extensions.

    Examples:
        >>> render_markdown("**hi**")
        '<p><strong>hi</strong></p>'
    """
    return markdown.markdown(text, extensions=list(EMAIL_MARKDOWN_EXTENSIONS))


def passthrough_cleaner(html: str) -> str:
    """Return ``html`` unchanged."""
    return html


def strip_html(text: str) -> str:
    """Remove markup from ``text``.

    User reference tags such as ``<user name="pat">`` keep the user name;
    every other tag is dropped.

    Examples:
        >>> strip_html('Hi <b>there</b> <user name="pat">')
        'Hi there pat'
    """
    text = _USER_TAG_PATTERN.sub(r"\1", text)
    return _TAG_PATTERN.sub("", text)


def rewrite_markdown_links(text: str) -> str:
    """Rewrite ``[label](`` into ``label (``.

    Only the part through the opening parenthesis changes; the URL and the
    closing parenthesis stay where they were.

    Examples:
        >>> rewrite_markdown_links("see [click here](http://x.com) now")
        'see click here (http://x.com) now'
    """
    return _MARKDOWN_LINK_PATTERN.sub(r"\1 (", text)


def compose_text(text: str, greeting: str | None, footer: str) -> str:
    """Join greeting, body and footer with blank lines.

    Examples:
        >>> compose_text("Hello", None, "Bye")
        'Hello\\n\\nBye'
        >>> compose_text("Hello", "Dear Pat,", "Bye")
        'Dear Pat,\\n\\nHello\\n\\nBye'
    """
    sections = [greeting] if greeting else []
    sections.extend((text, footer))
    return "\n\n".join(sections)


def format_mail(
    text: str,
    greeting_user: str | None = None,
    *,
    settings: MailSettings | None = None,
    translate: Translator | None = None,
    render: MarkdownRenderer | None = None,
    clean: HtmlCleaner | None = None,
) -> tuple[str, str]:
    """Format a templated mail body.

    Args:
        text: Markdown body without greeting or footer.
        greeting_user: Name to greet; no greeting line when unset.
        settings: Site settings for the footer (defaults when unset).
        translate: Localized string lookup (bundled catalog when unset).
        render: Markdown renderer (:func:`render_markdown` when unset).
        clean: HTML cleaner applied after rendering (pass-through when unset).

    Returns:
        Tuple of ``(html, plaintext)``.
    """
    settings = settings or MailSettings()
    translate = translate or MessageCatalog()
    render = render or render_markdown
    clean = clean or passthrough_cleaner

    greeting = translate(GREETING_ID, {"user": greeting_user}) if greeting_user else None
    footer = translate(FOOTER_ID, {"sitename": settings.site_name, "siteroot": settings.site_root})
    working = compose_text(text, greeting, footer)

    html = clean(render(working))
    plaintext = rewrite_markdown_links(strip_html(working))

    log.debug("Formatted mail (greeting=%s, html=%d chars)", bool(greeting), len(html))
    return html, plaintext


__all__ = [
    "EMAIL_MARKDOWN_EXTENSIONS",
    "FOOTER_ID",
    "GREETING_ID",
    "HtmlCleaner",
    "MarkdownRenderer",
    "compose_text",
    "format_mail",
    "passthrough_cleaner",
    "render_markdown",
    "rewrite_markdown_links",
    "strip_html",
]
