"""Builds the plain-text and HTML bodies of channel summary emails."""

import html
import re
from dataclasses import dataclass
from datetime import datetime

import markdown

from utils import format_date

_MARKDOWN_FENCE = re.compile(r"```markdown\n([\s\S]*?)```")


@dataclass
class SummaryMetadata:
    channel_id: str
    start_date: datetime
    end_date: datetime
    message_count: int


def build_subject(start_date: datetime, end_date: datetime) -> str:
    return f"Discord Channel Summary ({format_date(start_date)} to {format_date(end_date)})"


def strip_markdown_fence(summary: str) -> str:
    """Unwrap ```markdown fenced blocks that models sometimes return."""
    if "```markdown" not in summary:
        return summary
    return _MARKDOWN_FENCE.sub(r"\1", summary)


def render_text_email(summary: str, metadata: SummaryMetadata, generated_on: datetime) -> str:
    return f"""Discord Channel Summary
======================

Channel ID: {metadata.channel_id}
Date Range: {format_date(metadata.start_date)} to {format_date(metadata.end_date)}
Messages Processed: {metadata.message_count}

{summary}

Generated on {format_date(generated_on)}""".strip()


def render_html_email(summary: str, metadata: SummaryMetadata, generated_on: datetime) -> str:
    """Render the summary Markdown into the fixed HTML page template."""
    summary_html = markdown.markdown(strip_markdown_fence(summary), extensions=["extra", "sane_lists"])

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>Discord Channel Summary</title>
  <style>
    body {{
      font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Oxygen, Ubuntu, Cantarell, 'Open Sans', sans-serif;
      line-height: 1.6;
      color: #333;
      max-width: 800px;
      margin: 0 auto;
      padding: 20px;
      background-color: #f9f9f9;
    }}
    header {{
      text-align: center;
      margin-bottom: 20px;
    }}
    h1 {{
      color: #5865F2;
    }}
    .metadata {{
      background-color: #fff;
      border-radius: 8px;
      padding: 15px;
      margin-bottom: 20px;
      box-shadow: 0 1px 3px rgba(0,0,0,0.1);
    }}
    .summary {{
      background-color: #fff;
      border-radius: 8px;
      padding: 20px;
      box-shadow: 0 1px 3px rgba(0,0,0,0.1);
    }}
    .summary img {{
      max-width: 100%;
      height: auto;
    }}
    footer {{
      text-align: center;
      margin-top: 20px;
      font-size: 0.9rem;
      color: #666;
    }}
  </style>
</head>
<body>
  <header>
    <h1>Discord Channel Summary</h1>
  </header>
  <div class="metadata">
    <p><strong>Channel ID:</strong> {html.escape(str(metadata.channel_id))}</p>
    <p><strong>Date Range:</strong> {format_date(metadata.start_date)} to {format_date(metadata.end_date)}</p>
    <p><strong>Messages Processed:</strong> {metadata.message_count}</p>
  </div>
  <div class="summary">
    {summary_html}
  </div>
  <footer>
    <p>Generated on {format_date(generated_on)}</p>
  </footer>
</body>
</html>"""
