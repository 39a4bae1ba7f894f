"""
Unit tests for shared HTML helpers.
"""

from contentmill.utils.html import clean_html, escape_html, find_image_in_html, html_to_text, slugify


class TestSlugify:

    def test_basic(self):
        assert slugify("Sharpening Chisels: The Easy Way!") == "sharpening-chisels-the-easy-way"

    def test_accents_folded(self):
        assert slugify("Crème brûlée torch") == "creme-brulee-torch"

    def test_max_length_trims_trailing_hyphen(self):
        assert slugify("abc def", max_length=4) == "abc"

    def test_empty(self):
        assert slugify("") == ""
        assert slugify("!!!") == ""


class TestText:

    def test_html_to_text(self):
        assert html_to_text("<p>One</p><script>x()</script><p>Two &amp; three</p>") == "One Two & three"

    def test_plain_text_unescaped(self):
        assert html_to_text("Fish &amp; chips") == "Fish & chips"

    def test_escape(self):
        assert escape_html('<a href="x">\'') == "&lt;a href=&quot;x&quot;&gt;&#x27;"


class TestCleanHtml:

    def test_strips_unsafe_markup(self):
        cleaned = clean_html('<p onmouseover="x()">Hi</p><iframe src="a"></iframe><!-- c --><style>p{}</style>')
        assert cleaned == "<p>Hi</p>"


class TestFindImage:

    def test_og_image_either_order(self):
        assert find_image_in_html('<meta property="og:image" content="https://a/1.jpg">') == "https://a/1.jpg"
        assert find_image_in_html('<meta content="https://a/2.jpg" property="og:image">') == "https://a/2.jpg"

    def test_first_img(self):
        assert find_image_in_html('<p><img alt="" src="https://a/3.jpg"></p>') == "https://a/3.jpg"

    def test_none(self):
        assert find_image_in_html("<p>No pictures</p>") is None
        assert find_image_in_html(None) is None
