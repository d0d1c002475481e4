"""Prompt templates for contract generation and validation."""

from __future__ import annotations

from dataclasses import dataclass

from langchain_core.prompts import PromptTemplate

TRUNCATION_MARKER = "\n...[truncated]..."

GENERATION_PROMPT = PromptTemplate.from_template(
    """
You are an expert legal contract drafting assistant. Draft a complete,
professionally structured contract.

REFERENCE TEMPLATE ({rag_info}):
{reference_content}

BUSINESS PROPOSAL:
{query}

CONTRACT DETAILS:
- Title: {title}
- Type: {contract_type}
- Parties: {parties}

INSTRUCTIONS:
1. Address every requirement stated in the proposal.
2. Follow the reference structure with numbered sections.
3. Cover purpose, definitions, responsibilities, payment, deliverables,
   confidentiality, intellectual property, warranties, liability,
   indemnification, term and termination, dispute resolution, governing law,
   amendments, entire agreement and signatures.
4. Replace placeholders with the actual party names.
5. Produce full clauses, not an outline.

Draft the complete {contract_type} contract now:
""".strip()
)

_JSON_SHAPE = (
    '{{"status": "compliant|issues_found|failed", "summary": "...", '
    '"issues": [{{"type": "error|warning|info", "section": "...", "message": "..."}}]}}'
)

_JSON_ONLY = "\n\nProvide your response as valid JSON only, with no additional text."

CLOUD_CLAUSE_PROMPT = PromptTemplate.from_template(
    """
You are a legal contract validator. Validate the contract against standard
legal requirements.

CONTRACT:
{target}

REFERENCE CLAUSES:
{reference}
{context}

VALIDATE FOR:
1. Essential clauses present (definitions, term, termination, confidentiality,
   IP, liability, dispute resolution, governing law)
2. Clause quality (clear language, no conflicts, proper terminology)
3. Structure (logical organization, complete sections)
4. Risk (unusual clauses, missing protections)

OUTPUT JSON only:
"""
    + _JSON_SHAPE
    + """

STATUS: compliant=all essential clauses present, issues_found=some missing or
weak clauses, failed=critical deficiencies"""
    + _JSON_ONLY
)

CLOUD_REQUIREMENTS_PROMPT = PromptTemplate.from_template(
    """
You are a legal contract validator. Validate the contract against the business
proposal requirements.

PROPOSAL:
{requirements}

CONTRACT:
{target}
{context}

VALIDATION:
1. TYPE CHECK: the contract type must match the proposal type
2. REQUIREMENTS: every requirement is addressed; contradictions are errors
3. COMPLETENESS: the expected structure exists

OUTPUT JSON only:
"""
    + _JSON_SHAPE
    + """

STATUS: compliant=requirements met, issues_found=some issues, failed=type
mismatch or critical issues"""
    + _JSON_ONLY
)

LOCAL_CLAUSE_PROMPT = PromptTemplate.from_template(
    """
Validate this contract against legal standards. Return JSON only.

CONTRACT:
{target}

REFERENCE:
{reference}
{context}

Check: essential clauses, clarity, structure, risks.
JSON format: """
    + _JSON_SHAPE
    + _JSON_ONLY
)

LOCAL_REQUIREMENTS_PROMPT = PromptTemplate.from_template(
    """
Validate contract against proposal. Return JSON only.

PROPOSAL:
{requirements}

CONTRACT:
{target}
{context}

Check: type match, requirements met, completeness.
JSON format: """
    + _JSON_SHAPE
    + _JSON_ONLY
)


@dataclass(frozen=True, slots=True)
class ValidationPrompts:
    """The pair of validation templates matching one provider's context size."""

    clauses: PromptTemplate
    requirements: PromptTemplate

    @classmethod
    def for_local(cls, is_local: bool) -> "ValidationPrompts":
        if is_local:
            return cls(clauses=LOCAL_CLAUSE_PROMPT, requirements=LOCAL_REQUIREMENTS_PROMPT)
        return cls(clauses=CLOUD_CLAUSE_PROMPT, requirements=CLOUD_REQUIREMENTS_PROMPT)


def truncate_section(text: str, limit: int) -> str:
    """Cap a prompt section at `limit` characters, marking the cut."""
    if len(text) <= limit:
        return text
    return text[:limit] + TRUNCATION_MARKER
