"""Unit tests for Normalizer."""

from unittest.mock import MagicMock

import pytest

from confmd.config import Settings
from confmd.converter.normalizer import Normalizer
from confmd.converter.placeholders import PlaceholderStore

MALFORMED_INPUTS = [
    '<ac:structured-macro ac:name="info"><ac:rich-text-body><p>never closed',
    '<ac:link><ri:page ri:content-title="Home"',
    "</ac:structured-macro></ac:link></ri:page>",
    '<ac:image><ac:image><ri:attachment ri:filename="a.png" /></ac:image>',
    '<ac:task-list><ac:task><ac:task-body>x</ac:task-list>',
    "<<ac:emoticon ac:name=\"smile\"/><</ri:user",
    '<ac:adf-extension><ac:adf-node type="extension">',
    '<ac:structured-macro ac:name="code"><ac:plain-text-body><![CDATA[x',
]


@pytest.fixture
def normalizer(settings: Settings) -> Normalizer:
    """Create a Normalizer with default settings."""
    return Normalizer(settings)


class TestNormalizer:
    """Test Normalizer class functionality."""

    def test_pass_order(self, normalizer: Normalizer) -> None:
        """Test passes run in their fixed order."""
        assert normalizer.pass_names == [
            "emoticons",
            "images",
            "links",
            "macros",
            "tasks",
            "extensions",
            "residual_tags",
        ]

    def test_emoticon(self, normalizer: Normalizer) -> None:
        """Test a lone emoticon."""
        assert normalizer.normalize('<ac:emoticon ac:name="smile" />') == ":)"

    def test_mixed_document(self, normalizer: Normalizer) -> None:
        """Test every element class in one document."""
        markup = (
            "<h1>Title</h1>"
            '<p>Hi <ac:link><ri:user ri:account-id="u1" /></ac:link> '
            '<ac:emoticon ac:name="wink" /></p>'
            '<ac:image><ri:attachment ri:filename="diagram.png" /></ac:image>'
            '<ac:structured-macro ac:name="status">'
            '<ac:parameter ac:name="title">Done</ac:parameter>'
            '<ac:parameter ac:name="colour">Green</ac:parameter>'
            "</ac:structured-macro>"
            "<ac:task-list><ac:task><ac:task-status>complete</ac:task-status>"
            "<ac:task-body>Ship</ac:task-body></ac:task></ac:task-list>"
            '<p><ac:inline-comment-marker ac:ref="c1">kept</ac:inline-comment-marker></p>'
        )
        result = normalizer.normalize(markup)

        assert result == (
            "<h1>Title</h1><p>Hi [@u1](@u1) ;)</p>[Image: diagram.png][OK] DONE"
            "- [x] Ship<p>kept</p>"
        )

    def test_image_inside_panel(self, normalizer: Normalizer) -> None:
        """Test an image inside a panel is rendered before the panel."""
        markup = (
            '<ac:structured-macro ac:name="note"><ac:rich-text-body><p>See '
            '<ac:image><ri:attachment ri:filename="x.png" /></ac:image></p>'
            "</ac:rich-text-body></ac:structured-macro>"
        )
        assert normalizer.normalize(markup) == "> **NOTE**: See [Image: x.png]"

    def test_store_protects_fragments(self, normalizer: Normalizer) -> None:
        """Test rendered fragments are tokenized when a store is given."""
        store = PlaceholderStore()
        result = normalizer.normalize('<p><ac:emoticon ac:name="smile" /></p>', store)

        assert ":)" not in result
        assert store.restore(result) == "<p>:)</p>"

    @pytest.mark.parametrize("markup", MALFORMED_INPUTS)
    def test_no_custom_markers_survive(self, normalizer: Normalizer, markup: str) -> None:
        """Test malformed markup leaves no ac:/ri: marker behind."""
        result = normalizer.normalize(markup)
        assert "<ac:" not in result
        assert "<ri:" not in result
        assert "</ac:" not in result

    def test_iteration_cap_terminates(self) -> None:
        """Test a document with more elements than the cap still terminates."""
        settings = MagicMock()
        settings.scan_max_iterations = 5
        settings.macro_max_depth = 8
        settings.residue_min_run_length = 500
        settings.xml_roots.return_value = ["mxGraphModel"]

        markup = '<ac:emoticon ac:name="smile" />' * 20
        result = Normalizer(settings).normalize(markup)

        assert result.startswith(":)" * 5)
        assert "<ac:" not in result

    def test_plain_html_untouched(self, normalizer: Normalizer) -> None:
        """Test markup without custom elements passes through."""
        markup = "<p>Plain <a href='https://example.com'>link</a></p>"
        assert normalizer.normalize(markup) == markup
