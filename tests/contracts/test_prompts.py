from contract_rag.workflows.prompts import (
    CLOUD_CLAUSE_PROMPT,
    CLOUD_REQUIREMENTS_PROMPT,
    GENERATION_PROMPT,
    LOCAL_CLAUSE_PROMPT,
    LOCAL_REQUIREMENTS_PROMPT,
    TRUNCATION_MARKER,
    ValidationPrompts,
    truncate_section,
)


def test_validation_prompts_demand_the_json_shape() -> None:
    for template in (CLOUD_CLAUSE_PROMPT, LOCAL_CLAUSE_PROMPT):
        rendered = template.format(target="T", reference="R", context="")
        assert '"status": "compliant|issues_found|failed"' in rendered
        assert "valid JSON only" in rendered

    for template in (CLOUD_REQUIREMENTS_PROMPT, LOCAL_REQUIREMENTS_PROMPT):
        rendered = template.format(requirements="P", target="T", context="")
        assert '"issues": [{"type": "error|warning|info"' in rendered


def test_provider_selects_prompt_family() -> None:
    local = ValidationPrompts.for_local(True)
    cloud = ValidationPrompts.for_local(False)

    assert local.clauses is LOCAL_CLAUSE_PROMPT
    assert local.requirements is LOCAL_REQUIREMENTS_PROMPT
    assert cloud.clauses is CLOUD_CLAUSE_PROMPT
    assert cloud.requirements is CLOUD_REQUIREMENTS_PROMPT


def test_generation_prompt_grounds_on_reference_and_parties() -> None:
    rendered = GENERATION_PROMPT.format(
        rag_info="retrieved by semantic search",
        reference_content="REFERENCE BODY",
        query="two-year pilot",
        title="Pilot NDA",
        contract_type="nda",
        parties="Acme Corp, Beta LLC",
    )

    assert "REFERENCE BODY" in rendered
    assert "- Parties: Acme Corp, Beta LLC" in rendered
    assert "Draft the complete nda contract now:" in rendered


def test_truncate_section_marks_the_cut() -> None:
    assert truncate_section("short", 10) == "short"
    assert truncate_section("abcdefghij", 4) == "abcd" + TRUNCATION_MARKER
