import unittest
from datetime import datetime, timezone

from summary_email import (
    SummaryMetadata,
    build_subject,
    render_html_email,
    render_text_email,
    strip_markdown_fence,
)


class TestSummaryEmail(unittest.TestCase):

    def setUp(self):
        self.metadata = SummaryMetadata(
            channel_id="<chan>",
            start_date=datetime(2025, 4, 2, 12, 0, tzinfo=timezone.utc),
            end_date=datetime(2025, 4, 3, 12, 0, tzinfo=timezone.utc),
            message_count=42,
        )
        self.generated_on = datetime(2025, 4, 3, 12, 0, tzinfo=timezone.utc)

    def test_subject(self):
        self.assertEqual(
            build_subject(self.metadata.start_date, self.metadata.end_date),
            "Discord Channel Summary (2025-04-02 to 2025-04-03)",
        )

    def test_strip_markdown_fence(self):
        self.assertEqual(strip_markdown_fence("```markdown\n# News\n```"), "# News\n")
        self.assertEqual(strip_markdown_fence("# News"), "# News")

    def test_text_email(self):
        text = render_text_email("alice shipped it", self.metadata, self.generated_on)

        self.assertTrue(text.startswith("Discord Channel Summary\n======================\n\nChannel ID: <chan>"))
        self.assertIn("Date Range: 2025-04-02 to 2025-04-03", text)
        self.assertIn("Messages Processed: 42", text)
        self.assertIn("\n\nalice shipped it\n\n", text)
        self.assertTrue(text.endswith("Generated on 2025-04-03"))

    def test_html_email_renders_markdown(self):
        page = render_html_email(
            "```markdown\n## Releases\n\n**alice** shipped [the repo](https://github.com/x)\n```",
            self.metadata,
            self.generated_on,
        )

        self.assertIn("<h2>Releases</h2>", page)
        self.assertIn("<strong>alice</strong>", page)
        self.assertIn('<a href="https://github.com/x">the repo</a>', page)
        self.assertIn("&lt;chan&gt;", page)
        self.assertIn("<p><strong>Messages Processed:</strong> 42</p>", page)
        self.assertNotIn("```", page)


if __name__ == '__main__':
    unittest.main()
