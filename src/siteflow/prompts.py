"""Prompt text for site-flow generation."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class GenerationRequest:
    """What is sent to the text generator.

    ``instruction`` frames the task (system role); ``context`` carries the
    user's material and the required output shape (user role).
    """

    instruction: str
    context: str


DESCRIPTION_INSTRUCTION = (
    "You are an expert UX designer and information architect. Analyze app "
    "descriptions and produce a site flow: the pages of the app and the "
    "navigation links between them. Return ONLY valid JSON, no markdown or "
    "explanations."
)

DOCUMENT_INSTRUCTION = (
    "You are an expert UX designer and information architect. Analyze product "
    "requirements documents and extract the site flow they describe: every page "
    "or screen and the navigation links between them. Return ONLY valid JSON, "
    "no markdown or explanations."
)

OUTPUT_SHAPE = """Return a JSON object with exactly this structure:
{
  "nodes": [
    {"id": "1", "name": "Home", "description": "Landing page", "level": 0}
  ],
  "connections": [
    {"from": "1", "to": "2"}
  ]
}

Rules:
- Level 0 = Home/Landing page (always include exactly one)
- Level 1 = Main navigation pages reached directly from home
- Level 2+ = Sub-pages of the page one level above
- Every node has a unique "id"; connections reference those ids
- Every page except the home page has at least one incoming connection
- Use clear, descriptive page names and one-sentence descriptions
- Return ONLY the JSON object, no other text"""

DOCUMENT_FOCUS = """From the document, identify:
- Pages and screens named in feature lists, user flows and user stories
- Navigation paths and user journeys between them
- Entry points and the hierarchy of sections and sub-sections"""


def build_request(description: str | None = None, document: str | None = None) -> GenerationRequest:
    """Build the request for a description, a long document, or both."""
    description = (description or "").strip()
    document = (document or "").strip()

    if document:
        parts = [f'Analyze this product requirements document and extract the site flow:\n\n"""\n{document}\n"""']
        if description:
            parts.append(f"The app is summarized as: {description}")
        parts.append(DOCUMENT_FOCUS)
        parts.append(OUTPUT_SHAPE)
        return GenerationRequest(instruction=DOCUMENT_INSTRUCTION, context="\n\n".join(parts))

    context = f'Analyze this app description and generate a site flow:\n\n"{description}"\n\n{OUTPUT_SHAPE}'
    return GenerationRequest(instruction=DESCRIPTION_INSTRUCTION, context=context)
