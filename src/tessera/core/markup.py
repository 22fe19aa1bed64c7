"""Small markup helpers shared by component sources and the tree renderer."""

from __future__ import annotations

from markupsafe import Markup, escape


def attributes(attrs: dict[str, str]) -> Markup:
    """Render an attribute dict as ` key="value"` pairs, in insertion order."""
    return Markup("").join(
        Markup(' {}="{}"').format(name, value) for name, value in attrs.items()
    )


def element(tag: str, attrs: dict[str, str], content: str = "") -> Markup:
    """Wrap already-safe content in a tag. Plain strings are escaped."""
    return Markup("<{0}{1}>{2}</{0}>").format(Markup(tag), attributes(attrs), content)


def comment(text: str) -> Markup:
    return Markup(f"<!-- {escape(text)} -->")


def text_or_markup(value: str) -> Markup:
    """Treat strings that look like HTML as markup, everything else as text."""
    if isinstance(value, Markup):
        return value
    if value.lstrip().startswith("<"):
        return Markup(value)
    return escape(value)
