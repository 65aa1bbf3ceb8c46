"""Prompt templates for page selection and business profile extraction."""

import json
from typing import Any, Dict, List

BUSINESS_PROFILE_TEMPLATE = """{
  "company_name": "",
  "business_description": "",
  "value_proposition": "",
  "target_customer": "",
  "main_product_service": "",
  "key_features": [],
  "pricing_info": "",
  "business_stage": "",
  "industry_category": "",
  "competitors_mentioned": [],
  "unique_selling_points": [],
  "team_size": "",
  "recent_updates": "",
  "social_media": {
    "twitter": "",
    "linkedin": "",
    "other": []
  },
  "funding_info": "",
  "company_mission": "",
  "team_background": "",
  "additional_notes": ""
}"""

_PROFILE_RULES = """For any information you cannot find, use "Not found" as the value.
For arrays that are empty, use [].
Respond with ONLY the JSON object, no additional text or explanation."""


def link_selection_prompt(
    links: List[Dict[str, Any]],
    company_name: str,
    base_url: str,
    max_pages: int = 10,
) -> str:
    """Ask for the 0-10 candidate pages that best describe the business."""
    links_json = json.dumps(links, indent=2)
    return f"""Analyze {company_name or 'this company'}: {base_url}

Your goal: find pages that tell us about THE BUSINESS - who they are, what they sell, how they make money, who runs it.

## Links to choose from

{links_json}

## Task
Select the pages that will give us the most information about:
- What the company does and who runs it
- What products or services they offer
- Who their customers are and how the business makes money
- Company background and story

Favor about, team, product, solutions, pricing and case study pages.
Avoid legal pages, login or signup pages, and generic listing pages.
Each "category" is only a hint derived from the URL path.

## Output
Return ONLY this JSON object:
```json
{{
  "selected_links": [
    {{"url": "full_url_from_the_list", "text": "link_text", "reasoning": "what business info this page provides"}}
  ],
  "total_selected": 0,
  "selection_strategy": "brief explanation of your approach"
}}
```

Requirements:
- Select between 0 and {max_pages} links
- Every selected URL must be copied exactly from the list above
- If no link adds significant business value, select 0 and explain why"""


def multi_page_analysis_prompt(
    website_url: str,
    corpus: str,
    pages_analyzed: int,
    external_pages_analyzed: int,
) -> str:
    """Business profile extraction over the homepage plus selected pages."""
    return f"""You are analyzing the website {website_url} to build a business profile.

The content below comes from {pages_analyzed} page(s) of the site, including {external_pages_analyzed} page(s) on external domains the site links to.
Sections are tagged with the page they came from. PAGE LINKS blocks list further URLs found on a page.

{corpus}

Combine the evidence across all pages. Prefer facts stated on the pages over assumptions.
Respond with ONLY a JSON object containing the business information:

{BUSINESS_PROFILE_TEMPLATE}

{_PROFILE_RULES}"""


def main_crawl_prompt(website_url: str, clean_text: str) -> str:
    """Business profile extraction from the homepage text alone."""
    return f"""I need you to analyze this website: {website_url}

Homepage content:

{clean_text}

Analyze what you can find about this business and respond with ONLY a JSON object containing the business information:

{BUSINESS_PROFILE_TEMPLATE}

{_PROFILE_RULES}"""


def fallback_crawl_prompt(website_url: str) -> str:
    """Best-effort profile when no page content could be fetched."""
    return f"""Based on the website URL {website_url}, provide your best analysis of what this business likely does.
Respond with ONLY a JSON object:

{BUSINESS_PROFILE_TEMPLATE}

Use "Unknown" for business_stage and "Not found" for anything you cannot infer.
Set additional_notes to "Analysis based on URL and general knowledge".
Extract what you can infer from the domain name and provide your best educated analysis."""
