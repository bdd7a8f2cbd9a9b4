import json
import re

import pytest

from conftest import ScriptedClient, facet_of, java_responder, profile_line
from talent_match.models.models import FACETS, Facet
from talent_match.services.graph import (
    build_graph, extract_requirements, match_candidates, process_profiles, write_report,
)
from talent_match.utils.exceptions import CompletionError, InvalidInputError

REPORT_NAME = re.compile(r"^\d{4}-\d{2}-\d{2}_\d{2}-\d{2}-\d{2}_analysis_report\.json$")


class TestProcessProfiles:
    """Test cases for the normalization stage"""

    @pytest.mark.asyncio
    async def test_normalizes_valid_profiles(self, candidates, fast_processing):
        client = ScriptedClient(java_responder)

        processed = await process_profiles(client, candidates, fast_processing)

        assert [p.id for p in processed] == ["1", "2"]
        assert processed[0].facet(Facet.SKILLS) == ["Java"]
        assert set(processed[0].facet_extraction) == set(FACETS)
        assert "Name: John" in processed[0].flattened_text

    @pytest.mark.asyncio
    async def test_failed_profile_is_excluded(self, candidates, fast_processing):
        def responder(prompt):
            if "Name: Jane" in prompt:
                return CompletionError("connection reset")
            return java_responder(prompt)

        processed = await process_profiles(ScriptedClient(responder), candidates, fast_processing)

        assert [p.id for p in processed] == ["1"]

    @pytest.mark.asyncio
    async def test_invalid_profiles_are_dropped_before_normalization(self, fast_processing):
        client = ScriptedClient(java_responder)
        processed = await process_profiles(client, [{"firstName": "No id"}, 5, {"id": "3"}], fast_processing)
        assert [p.id for p in processed] == ["3"]
        assert len(client.prompts) == 1


class TestExtractRequirements:
    """Test cases for the requirement extraction stage"""

    @pytest.mark.asyncio
    async def test_extracts_facets_from_fenced_reply(self, job_description):
        requirements = await extract_requirements(ScriptedClient(java_responder), job_description)
        assert requirements[Facet.SKILLS] == ["Java"]
        assert requirements[Facet.CERTIFICATIONS] == []
        assert set(requirements) == set(FACETS)

    @pytest.mark.asyncio
    async def test_failure_propagates(self, job_description):
        client = ScriptedClient(lambda prompt: CompletionError("gateway timeout", status_code=504))
        with pytest.raises(CompletionError):
            await extract_requirements(client, job_description)

    @pytest.mark.asyncio
    async def test_blank_description(self):
        with pytest.raises(InvalidInputError):
            await extract_requirements(ScriptedClient(java_responder), "   ")


class TestMatchingWorkflow:
    """Test cases for the compiled LangGraph workflow"""

    @pytest.mark.asyncio
    async def test_walks_every_stage(self, candidates, job_description, fast_processing):
        workflow = build_graph(ScriptedClient(java_responder), fast_processing)

        state = await workflow.ainvoke({
            "job_description": f"  {job_description}  ",
            "raw_profiles": candidates,
            "current_step": "start",
        })

        assert state["current_step"] == "complete"
        assert state["job_description"] == job_description
        assert [p.id for p in state["processed_profiles"]] == ["1", "2"]
        assert state["requirements"][Facet.SKILLS] == ["Java"]
        assert len(state["facet_results"]) == len(FACETS) * 2
        assert [r.profile_id for r in state["analysis_results"]] == ["1", "2"]

    @pytest.mark.asyncio
    async def test_rejects_invalid_state(self, job_description):
        workflow = build_graph(ScriptedClient(java_responder))
        with pytest.raises(InvalidInputError):
            await workflow.ainvoke({"job_description": job_description, "raw_profiles": "nope"})


class TestMatchCandidates:
    """Test cases for the public matching entry point"""

    @pytest.mark.asyncio
    async def test_ranks_java_profile_first(self, candidates, job_description, fast_processing, tmp_path):
        results = await match_candidates(
            job_description, candidates,
            client=ScriptedClient(java_responder), processing=fast_processing, report_dir=tmp_path,
        )

        assert [r.profile_id for r in results] == ["1", "2"]
        for report in results:
            assert set(report.section_matches) == set(FACETS)
            assert 0 <= report.overall_match <= 100
            expected = sum(m.match_percentage for m in report.section_matches.values()) / 6
            assert report.overall_match == pytest.approx(expected)
        assert results[0].overall_match > results[1].overall_match

        [report_file] = list(tmp_path.iterdir())
        assert REPORT_NAME.match(report_file.name)
        saved = json.loads(report_file.read_text(encoding="utf-8"))
        assert [entry["profileId"] for entry in saved] == ["1", "2"]
        assert saved[0]["sectionMatches"]["skills"]["matchPercentage"] == 90

    @pytest.mark.asyncio
    async def test_profiles_from_file(self, candidates, job_description, fast_processing, tmp_path):
        path = tmp_path / "candidates.json"
        path.write_text(json.dumps(candidates), encoding="utf-8")

        results = await match_candidates(
            job_description, str(path), client=ScriptedClient(java_responder), processing=fast_processing,
        )

        assert len(results) == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("job_description", ["", "   ", None, 42])
    async def test_invalid_job_description(self, job_description, candidates, fast_processing, tmp_path):
        client = ScriptedClient(java_responder)
        with pytest.raises(InvalidInputError):
            await match_candidates(
                job_description, candidates, client=client, processing=fast_processing, report_dir=tmp_path,
            )
        assert client.prompts == []
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_profiles_must_be_an_array(self, job_description, fast_processing):
        with pytest.raises(InvalidInputError):
            await match_candidates(
                job_description, {"id": "1"}, client=ScriptedClient(java_responder), processing=fast_processing,
            )

    @pytest.mark.asyncio
    async def test_requirement_failure_aborts_run(self, candidates, job_description, fast_processing, tmp_path):
        def responder(prompt):
            if prompt.startswith("Extract specific requirements"):
                return CompletionError("API request failed: Bad Gateway", status_code=502)
            return java_responder(prompt)

        client = ScriptedClient(responder)
        with pytest.raises(CompletionError):
            await match_candidates(
                job_description, candidates, client=client, processing=fast_processing, report_dir=tmp_path,
            )
        assert list(tmp_path.iterdir()) == []
        assert not any(p.startswith("Compare the profile's") for p in client.prompts)

    @pytest.mark.asyncio
    async def test_unparsable_comparison_scores_zero(self, candidates, job_description, fast_processing):
        """Only the broken (facet, profile) entry is zeroed"""
        broken = {"calls": 0}

        def one_broken(prompt):
            if prompt.startswith("Compare the profile's") and facet_of(prompt) == "skills" \
                    and '"Java"' in profile_line(prompt, "Profile skills:"):
                broken["calls"] += 1
                return "Sorry, I can't produce JSON today."
            return java_responder(prompt)

        results = await match_candidates(
            job_description, candidates, client=ScriptedClient(one_broken), processing=fast_processing,
        )

        by_id = {r.profile_id: r for r in results}
        john = by_id["1"].section_matches
        assert broken["calls"] == 1
        assert john[Facet.SKILLS].match_percentage == 0
        assert john[Facet.SKILLS].explanation == "Error analyzing skills"
        for facet in FACETS:
            if facet is not Facet.SKILLS:
                assert john[facet].match_percentage == 50
        assert by_id["2"].section_matches[Facet.SKILLS].match_percentage == 10

    @pytest.mark.asyncio
    async def test_no_valid_profiles(self, job_description, fast_processing, tmp_path):
        results = await match_candidates(
            job_description, [{"name": "no id"}],
            client=ScriptedClient(java_responder), processing=fast_processing, report_dir=tmp_path,
        )
        assert results == []
        [report_file] = list(tmp_path.iterdir())
        assert json.loads(report_file.read_text(encoding="utf-8")) == []


class TestWriteReport:
    """Test cases for the persisted analysis report"""

    def test_creates_directory(self, tmp_path):
        path = write_report([], tmp_path / "reports" / "nested")
        assert path.exists()
        assert REPORT_NAME.match(path.name)
        assert path.read_text(encoding="utf-8") == "[]"
