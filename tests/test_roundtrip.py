"""Round-trip properties between the parser and the renderer.

Tests:
- parse(render(tree)) reproduces canonical trees
- render(parse(md)) is idempotent
- Image attribute round trips
"""

from __future__ import annotations

import pytest


def _rich_document():
    from quillmark.document import (
        NodeKind,
        doc,
        hard_break,
        mark,
        node,
        paragraph,
        text,
    )

    quiz_data = '{"question": "Q?", "options": ["A", "B"], "correctAnswer": "A"}'
    return doc(
        node(NodeKind.HEADING, "Title", level=2),
        paragraph(text("Hello "), text("bold", "bold"), text(" and "), text("code", "code"), text(".")),
        paragraph(
            text("see "),
            text("docs", mark("link", href="https://example.com/docs")),
            hard_break(),
            text("secret", "spoiler"),
            text(" "),
            text("term", mark("annotation", explanation='a "quoted" note')),
        ),
        node(NodeKind.CALLOUT, paragraph("Careful"), type="warning"),
        node(NodeKind.DETAILS, paragraph("Hidden"), title="More", open=True),
        node(
            NodeKind.BULLET_LIST,
            node(NodeKind.LIST_ITEM, paragraph("one")),
            node(NodeKind.LIST_ITEM, paragraph("two")),
        ),
        node(NodeKind.CODE_BLOCK, language="python", code="print(1)"),
        node(NodeKind.MATH_BLOCK, latex="x^2"),
        node(NodeKind.QUIZ, data=quiz_data),
        node(NodeKind.HORIZONTAL_RULE),
        node(NodeKind.IMAGE, src="a.png", alt="A"),
        paragraph(),
    )


class TestTreeRoundTrip:
    """Canonical trees survive render then parse unchanged."""

    def test_rich_document(self) -> None:
        from quillmark.document import parse_markdown, render_markdown

        original = _rich_document()
        assert parse_markdown(render_markdown(original)) == original

    def test_rendering_is_idempotent(self) -> None:
        from quillmark.document import parse_markdown, render_markdown

        once = render_markdown(_rich_document())
        assert render_markdown(parse_markdown(once)) == once

    def test_adjacent_lists_stay_separate(self) -> None:
        from quillmark.document import NodeKind, doc, node, paragraph, parse_markdown, render_markdown

        def bullets(label: str):
            return node(NodeKind.BULLET_LIST, node(NodeKind.LIST_ITEM, paragraph(label)))

        original = doc(bullets("a"), bullets("b"), bullets("c"))
        assert parse_markdown(render_markdown(original)) == original

    def test_escaped_text(self) -> None:
        from quillmark.document import doc, paragraph, parse_markdown, render_markdown

        original = doc(paragraph("# 1. *not* [markup] :::tip"))
        assert parse_markdown(render_markdown(original)) == original

    def test_hard_break_and_nbsp(self) -> None:
        from quillmark.document import doc, hard_break, paragraph, parse_markdown, render_markdown

        original = doc(paragraph("a\u00a0b", hard_break(), "c"))
        assert parse_markdown(render_markdown(original)) == original

    def test_nested_containers(self) -> None:
        from quillmark.document import NodeKind, doc, node, paragraph, parse_markdown, render_markdown

        original = doc(
            node(
                NodeKind.CALLOUT,
                node(
                    NodeKind.DETAILS,
                    node(NodeKind.BLOCKQUOTE, paragraph("deep")),
                    title="Inner",
                ),
                type="tip",
            )
        )
        assert parse_markdown(render_markdown(original)) == original


class TestMarkdownIdempotency:
    """render(parse(md)) reaches a fixed point after one pass."""

    @pytest.mark.parametrize(
        "markdown",
        [
            "# Title\n\nSome *text* with **bold** and `code`.",
            ":::warning\nMind the gap.\n:::",
            ":::danger\nrm -rf /\n:::",
            "<details>\n\nbody\n\n</details>",
            "- a\n- b\n\n1. one\n2. two",
            "> quote\n>\n> more",
            "See :spoiler[the [big] twist] here",
            ":::warning\nunterminated",
            "one\ntwo  \nthree",
            "$$\n\\frac{a}{b}\n$$",
            '<img src="x.png" width="60" align="left">',
            "&nbsp;",
        ],
    )
    def test_fixed_point(self, markdown: str) -> None:
        from quillmark.document import parse_markdown, render_markdown

        once = render_markdown(parse_markdown(markdown))
        assert render_markdown(parse_markdown(once)) == once


class TestImageRoundTrip:
    """Width and alignment survive in both image forms."""

    @pytest.mark.parametrize(
        ("width", "align", "plain"),
        [
            (60, "left", False),
            (100, "center", True),
            (35, "right", False),
            (100, "left", False),
        ],
    )
    def test_image(self, width: int, align: str, plain: bool) -> None:
        from quillmark.document import NodeKind, doc, node, parse_markdown, render_markdown

        original = doc(node(NodeKind.IMAGE, src="pics/cat.png", alt="Cat", width=width, align=align))
        markdown = render_markdown(original)

        assert markdown.startswith("![") is plain
        parsed = parse_markdown(markdown)
        assert parsed == original
        assert parsed.content[0].attrs["width"] == width
        assert parsed.content[0].attrs["align"] == align


class TestContainersInListItems:
    """A container inside a list item closes inside that item."""

    def _bullets(self, *blocks):
        from quillmark.document import NodeKind, node

        return node(NodeKind.BULLET_LIST, node(NodeKind.LIST_ITEM, *blocks))

    def test_callout_in_list_in_callout(self) -> None:
        from quillmark.document import NodeKind, doc, node, paragraph, parse_markdown, render_markdown

        original = doc(
            node(
                NodeKind.CALLOUT,
                self._bullets(node(NodeKind.CALLOUT, paragraph("x"), type="tip")),
                paragraph("after"),
            )
        )
        assert parse_markdown(render_markdown(original)) == original

    def test_details_in_list_in_details(self) -> None:
        from quillmark.document import NodeKind, doc, node, paragraph, parse_markdown, render_markdown

        original = doc(
            node(
                NodeKind.DETAILS,
                self._bullets(node(NodeKind.DETAILS, paragraph("x"), title="Inner")),
                paragraph("after"),
                title="Outer",
            )
        )
        assert parse_markdown(render_markdown(original)) == original

    def test_code_with_closer_in_list_in_callout(self) -> None:
        from quillmark.document import NodeKind, doc, node, paragraph, parse_markdown, render_markdown

        original = doc(
            node(
                NodeKind.CALLOUT,
                self._bullets(node(NodeKind.CODE_BLOCK, code=":::\n</details>")),
                paragraph("after"),
                type="warning",
            )
        )
        assert parse_markdown(render_markdown(original)) == original


class TestLineBreaksInAttributes:
    """Attribute values keep their line breaks as character references."""

    def test_annotation_explanation(self) -> None:
        from quillmark.document import doc, mark, paragraph, parse_markdown, render_markdown, text

        note = mark("annotation", explanation="line one\n# two")
        original = doc(paragraph(text("word", note)))
        markdown = render_markdown(original)

        assert "\n" not in markdown
        assert parse_markdown(markdown) == original

    def test_details_title(self) -> None:
        from quillmark.document import NodeKind, doc, node, paragraph, parse_markdown, render_markdown

        original = doc(node(NodeKind.DETAILS, paragraph("body"), title="a\nb"))
        markdown = render_markdown(original)

        assert "<summary>a&#10;b</summary>" in markdown
        assert parse_markdown(markdown) == original

    @pytest.mark.parametrize("width", [50, 100])
    def test_image_alt(self, width: int) -> None:
        from quillmark.document import NodeKind, doc, node, parse_markdown, render_markdown

        original = doc(node(NodeKind.IMAGE, src="a.png", alt="a\nb", title="t\r\nu", width=width))
        markdown = render_markdown(original)

        assert markdown.startswith("<img ")
        assert "\n" not in markdown
        assert parse_markdown(markdown) == original


class TestLargeListStart:
    """Ordered list numbers stay within nine digits."""

    def test_start_is_clamped(self) -> None:
        from quillmark.document import NodeKind, node, paragraph

        lst = node(NodeKind.ORDERED_LIST, node(NodeKind.LIST_ITEM, paragraph("a")), start=10**12)
        assert lst.attrs["start"] == 999_999_999

    def test_last_number_round_trips(self) -> None:
        from quillmark.document import NodeKind, doc, node, paragraph, parse_markdown, render_markdown

        original = doc(
            node(
                NodeKind.ORDERED_LIST,
                node(NodeKind.LIST_ITEM, paragraph("a")),
                node(NodeKind.LIST_ITEM, paragraph("b")),
                start=999_999_999,
            )
        )
        markdown = render_markdown(original)

        assert markdown == "999999999. a\n999999999. b"
        assert parse_markdown(markdown) == original
