# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""Prompt templates sent to the language model."""

CRO_ANALYSIS_PROMPT = """
Act as a senior CRO (Conversion Rate Optimization) expert with over 20 years of experience optimizing high-converting landing pages.

Audit the landing page below and write a structured report in Markdown with these sections:

# CRO Audit: {url}

## Summary
Two or three sentences on who the page is for and how well it converts today.

## Above the Fold
Headline clarity, value proposition, hero visual and the primary call to action.

## Messaging & Copy
Benefit framing, readability, objections left unanswered.

## Calls to Action
Placement, wording, contrast and how many competing actions exist.

## Trust & Social Proof
Testimonials, logos, guarantees, security signals.

## Friction
Forms, navigation leaks, slow or distracting elements.

## Prioritized Recommendations
A numbered list, highest expected impact first.  For each item give the change, why it matters, and the expected effect on conversion.

Be specific to this page.  Quote the page copy where it helps.  Use **bold** for the key point of each bullet.

Page URL: {url}

Page text (sampled):
{text}

Page HTML (sampled):
{html}
"""
