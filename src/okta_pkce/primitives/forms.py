"""HTML form scraping for ``response_mode=form_post`` pages.

The authorize endpoint answers with an auto-submitting HTML form instead of
a redirect. Only one narrow contract is needed from that page: the values of
the ``input`` elements inside a form with a given id.
"""

from __future__ import annotations

from html.parser import HTMLParser


class _FormInputCollector(HTMLParser):
    def __init__(self, form_id: str):
        super().__init__(convert_charrefs=True)
        self.form_id = form_id
        self.found = False
        self.inputs: dict[str, str] = {}
        self._in_form = False

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        attributes = dict(attrs)
        if tag == "form":
            self._in_form = attributes.get("id") == self.form_id
            if self._in_form:
                self.found = True
        elif tag == "input" and self._in_form:
            name = attributes.get("name")
            # First occurrence wins
            if name and name not in self.inputs:
                self.inputs[name] = attributes.get("value") or ""

    def handle_endtag(self, tag: str) -> None:
        if tag == "form":
            self._in_form = False


def find_form_inputs(html: str, form_id: str) -> dict[str, str] | None:
    """Collect named input values from the form with id ``form_id``.

    Args:
        html: HTML document text
        form_id: ``id`` attribute of the form to read

    Returns:
        Mapping of input name to value, or None if no such form exists
    """
    collector = _FormInputCollector(form_id)
    collector.feed(html)
    collector.close()
    if not collector.found:
        return None
    return collector.inputs
