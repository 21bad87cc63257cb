"""Unit tests for the lexical markup helpers."""

import time
from unittest.mock import MagicMock, patch

from confmd.converter.markup import (
    ElementIndex,
    ScanContext,
    attribute,
    child_inner,
    find_element,
    find_opening,
    plain_text,
    remove_elements,
    replace_elements,
    strip_tags,
)
from confmd.converter.placeholders import PlaceholderStore


class TestFindElement:
    """Test element location."""

    def test_name_boundary(self) -> None:
        """Test that <ac:link does not match <ac:link-body>."""
        text = "<ac:link-body>x</ac:link-body><ac:link>y</ac:link>"
        assert find_opening(text, "ac:link") == text.index("<ac:link>")

    def test_paired_element(self) -> None:
        """Test a simple paired element span."""
        text = "a<ac:x k='1'>inner</ac:x>b"
        span = find_element(text, "ac:x")

        assert span is not None
        assert span.closed
        assert not span.self_closing
        assert text[span.start : span.end] == "<ac:x k='1'>inner</ac:x>"
        assert span.element(text).inner == "inner"
        assert span.element(text).opening_tag == "<ac:x k='1'>"

    def test_self_closing_element(self) -> None:
        """Test a self-closing element span."""
        text = '<ac:emoticon ac:name="smile" /> after'
        span = find_element(text, "ac:emoticon")

        assert span is not None
        assert span.self_closing
        assert text[span.end :] == " after"

    def test_nested_same_name(self) -> None:
        """Test that the closer of the outermost element is matched."""
        text = (
            '<ac:structured-macro ac:name="info"><ac:rich-text-body>'
            '<ac:structured-macro ac:name="status"></ac:structured-macro>'
            "</ac:rich-text-body></ac:structured-macro>tail"
        )
        span = find_element(text, "ac:structured-macro")

        assert span is not None
        assert text[span.end :] == "tail"

    def test_nested_self_closing_does_not_raise_depth(self) -> None:
        """Test that a nested self-closing instance does not need a closer."""
        text = "<ac:x><ac:x /></ac:x>tail"
        span = find_element(text, "ac:x")

        assert span is not None
        assert text[span.end :] == "tail"

    def test_quoted_gt_in_attribute(self) -> None:
        """Test that '>' inside a quoted attribute does not end the tag."""
        text = '<ac:x title="a > b">body</ac:x>'
        span = find_element(text, "ac:x")

        assert span is not None
        assert span.element(text).inner == "body"

    def test_unclosed_element_covers_opening_tag(self) -> None:
        """Test that a missing closer yields an open span over the opening tag."""
        text = '<ac:image ac:alt="x"><ri:attachment ri:filename="a.png" />'
        span = find_element(text, "ac:image")

        assert span is not None
        assert not span.closed
        assert text[span.start : span.end] == '<ac:image ac:alt="x">'

    def test_truncated_opening_tag(self) -> None:
        """Test that an opening tag without '>' is reported as truncated."""
        span = find_element('text <ac:image ri:filename="a', "ac:image")

        assert span is not None
        assert span.truncated

    def test_no_element(self) -> None:
        """Test that None is returned when the element is absent."""
        assert find_element("<p>plain</p>", "ac:link") is None

    def test_nesting_beyond_cap_is_unclosed(self) -> None:
        """Test a closer further away than the step bound is not matched."""
        text = "<ac:x>" * 1500 + "</ac:x>" * 1500
        span = find_element(text, "ac:x", max_steps=1000)

        assert span is not None
        assert not span.closed

    def test_closer_inside_attribute_does_not_open(self) -> None:
        """Test an opening whose tag contains a closer marker adds no depth."""
        text = '<ac:x>a<ac:x t="</ac:x>">b</ac:x>tail'
        span = find_element(text, "ac:x")

        assert span is not None
        assert text[span.start : span.end] == '<ac:x>a<ac:x t="</ac:x>'


class TestElementIndex:
    """Test the one-scan element index."""

    def test_find_from_offset(self) -> None:
        """Test instances are found from any offset, nested ones included."""
        text = "<ac:x>1<ac:x />2</ac:x><ac:x>3</ac:x>"
        index = ElementIndex(text, "ac:x")

        first = index.find(0)
        nested = index.find(1)
        last = index.find(first.end)

        assert text[first.start : first.end] == "<ac:x>1<ac:x />2</ac:x>"
        assert nested.self_closing
        assert last.element(text).inner == "3"
        assert index.find(len(text)) is None

    def test_unclosed_openings_are_fast(self) -> None:
        """Test thousands of unclosed openings are indexed in linear time."""
        text = "<ac:link>" * 20000 + "</ac:link>"

        start = time.perf_counter()
        index = ElementIndex(text, "ac:link")
        elapsed = time.perf_counter() - start

        assert elapsed < 2.0
        assert not index.find(0).closed
        assert index.find(len(text) - 20).closed


class TestReaders:
    """Test attribute and child readers."""

    def test_attribute_is_entity_decoded(self) -> None:
        """Test attribute values are HTML-unescaped."""
        tag = '<ri:page ri:content-title="R &amp; D" />'
        assert attribute(tag, "ri:content-title") == "R & D"

    def test_attribute_single_quotes(self) -> None:
        """Test single-quoted attribute values."""
        assert attribute("<ac:x ac:name='toc'>", "ac:name") == "toc"

    def test_attribute_requires_full_name(self) -> None:
        """Test that a suffix of a longer attribute name is not matched."""
        assert attribute('<ri:page ri:space-key="DEV" />', "space-key") is None

    def test_attribute_missing(self) -> None:
        """Test that a missing attribute yields None."""
        assert attribute("<ac:x>", "ac:name") is None

    def test_child_inner(self) -> None:
        """Test reading the content of the first child element."""
        block = "<ac:task><ac:task-status>complete</ac:task-status></ac:task>"
        assert child_inner(block, "ac:task-status") == "complete"
        assert child_inner(block, "ac:task-body") is None

    def test_remove_elements(self) -> None:
        """Test dropping every complete element with its content."""
        assert remove_elements("a<ac:x>1</ac:x>b<ac:x>2</ac:x>c", "ac:x") == "abc"


class TestStripTags:
    """Test tag stripping."""

    def test_inline_text(self) -> None:
        """Test tags vanish and whitespace collapses."""
        text = strip_tags("<p>Hello   <b>world</b></p><p>again</p>")
        assert text.strip() == "Hello world again"

    def test_line_breaks(self) -> None:
        """Test block boundaries turn into trimmed lines."""
        text = strip_tags("<p>First</p>\n  <p>Second<br/>Third</p>", line_breaks=True)
        assert text == "First\nSecond\nThird"

    def test_cdata_is_literal(self) -> None:
        """Test CDATA content is kept verbatim."""
        assert strip_tags("<![CDATA[a  <b> &amp;]]>") == "a  <b> &amp;"

    def test_entities_decoded(self) -> None:
        """Test entities outside CDATA are decoded."""
        assert strip_tags("&lt;tag&gt; &amp; more") == "<tag> & more"

    def test_comments_dropped(self) -> None:
        """Test HTML comments contribute no text."""
        assert strip_tags("<p>a<!-- hidden -->b</p>").strip() == "ab"

    def test_cdata_inside_paragraph_keeps_line(self) -> None:
        """Test CDATA content stays on the line of its paragraph."""
        text = strip_tags("<p>Run <![CDATA[make  all]]> now</p><p>Done</p>", line_breaks=True)
        assert text == "Run make  all now\nDone"

    def test_list_items_become_lines(self) -> None:
        """Test list items and table rows end their lines."""
        text = strip_tags(
            "<ul><li>one</li><li>two</li></ul><table><tr><td>a</td><td>b</td></tr></table>",
            line_breaks=True,
        )
        assert text == "one\ntwo\nab"

    def test_task_boundaries(self) -> None:
        """Test storage task elements end their lines."""
        text = strip_tags("<ac:task><ac:task-body>x</ac:task-body></ac:task>y", line_breaks=True)
        assert text == "x\ny"

    def test_text_without_tags(self) -> None:
        """Test a fragment without markup only has its entities decoded."""
        assert strip_tags("https://example.com/?a=1&amp;b=2") == "https://example.com/?a=1&b=2"


class TestPlainText:
    """Test plain-text body extraction."""

    def test_cdata_literal(self) -> None:
        """Test CDATA content is kept verbatim, markers removed."""
        assert plain_text("<![CDATA[x = 1 &amp;&amp; y]]>") == "x = 1 &amp;&amp; y"

    def test_entities_outside_cdata_decoded(self) -> None:
        """Test entities of a body without CDATA are decoded."""
        assert plain_text("a &lt; b &amp;&amp; c") == "a < b && c"

    def test_whitespace_preserved(self) -> None:
        """Test indentation and line breaks survive."""
        assert plain_text("if x:\n    y = 1") == "if x:\n    y = 1"

    def test_unterminated_cdata_marker_dropped(self) -> None:
        """Test a CDATA opener without its end leaves no marker."""
        assert plain_text("<![CDATA[abc") == "abc"


class TestReplaceElements:
    """Test the forward replacement sweep."""

    def test_replaces_every_instance(self, context: ScanContext) -> None:
        """Test all instances are replaced in order."""
        result = replace_elements(
            "a<ac:x>one</ac:x>b<ac:x>two</ac:x>c",
            "ac:x",
            lambda element: element.inner.upper(),
            context,
        )
        assert result == "aONEbTWOc"

    def test_output_is_not_rescanned(self, context: ScanContext) -> None:
        """Test rendered output containing the tag is left alone."""
        result = replace_elements(
            "<ac:x>1</ac:x>", "ac:x", lambda _: "<ac:x>2</ac:x>", context
        )
        assert result == "<ac:x>2</ac:x>"

    def test_truncated_tag_aborts_pass(self, context: ScanContext) -> None:
        """Test an opening tag without '>' stops the sweep."""
        result = replace_elements(
            "<ac:x>1</ac:x> then <ac:x broken", "ac:x", lambda _: "R", context
        )
        assert result == "R then <ac:x broken"

    @patch("confmd.converter.markup.logger")
    def test_iteration_cap(self, mock_logger: MagicMock) -> None:
        """Test the sweep stops at the cap and leaves the rest verbatim."""
        text = "<ac:x>1</ac:x><ac:x>2</ac:x><ac:x>3</ac:x>"
        result = replace_elements(text, "ac:x", lambda _: "R", ScanContext(max_iterations=2))

        assert result == "RR<ac:x>3</ac:x>"
        mock_logger.warning.assert_called_once()

    @patch("confmd.converter.markup.logger")
    def test_unclosed_openings_bounded_time(self, mock_logger: MagicMock) -> None:
        """Test a page of unclosed openings is swept quickly up to the cap."""
        text = "<ac:link>" * 4000 + "</ac:link>"

        start = time.perf_counter()
        result = replace_elements(text, "ac:link", lambda _: "", ScanContext())
        elapsed = time.perf_counter() - start

        assert elapsed < 2.0
        assert result == "<ac:link>" * 3000 + "</ac:link>"
        mock_logger.warning.assert_called_once()

    def test_placeholders_protect_and_restore(self) -> None:
        """Test rendered fragments are tokenized and restored for outer elements."""
        store = PlaceholderStore()
        context = ScanContext(store=store)

        text = "<ac:outer><ac:inner>y</ac:inner></ac:outer>"
        text = replace_elements(text, "ac:inner", lambda e: f"- [ ] {e.inner}", context)
        assert "- [ ]" not in text

        seen: list[str] = []

        def render_outer(element):
            seen.append(element.inner)
            return element.inner

        text = replace_elements(text, "ac:outer", render_outer, context)

        assert seen == ["- [ ] y"]
        assert store.restore(text) == "- [ ] y"
