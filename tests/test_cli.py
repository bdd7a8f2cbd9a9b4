import json
from unittest.mock import AsyncMock, patch

import pytest

from talent_match.cli import main
from talent_match.models.models import FACETS, FacetResult, MatchReport
from talent_match.utils.exceptions import CompletionError


@pytest.fixture
def inputs(tmp_path, candidates, job_description):
    jd = tmp_path / "job.txt"
    jd.write_text(job_description, encoding="utf-8")
    profiles = tmp_path / "candidates.json"
    profiles.write_text(json.dumps(candidates), encoding="utf-8")
    return jd, profiles


class TestCli:
    """Test cases for the command line entry point"""

    @patch("talent_match.cli.match_candidates", new_callable=AsyncMock)
    def test_prints_results(self, mock_match, inputs, tmp_path, capsys):
        jd, profiles = inputs
        mock_match.return_value = [MatchReport(
            profile_id="1",
            section_matches={facet: FacetResult(match_percentage=60) for facet in FACETS},
            overall_match=60,
        )]

        code = main(["-j", str(jd), "-p", str(profiles), "-o", str(tmp_path / "reports")])

        assert code == 0
        printed = json.loads(capsys.readouterr().out)
        assert printed[0]["profileId"] == "1"
        args, kwargs = mock_match.call_args
        assert args[1] == str(profiles)
        assert kwargs["report_dir"] == str(tmp_path / "reports")

    @patch("talent_match.cli.match_candidates", new_callable=AsyncMock)
    def test_fatal_error_exits_nonzero(self, mock_match, inputs):
        jd, profiles = inputs
        mock_match.side_effect = CompletionError("API request failed: Bad Gateway")

        assert main(["-j", str(jd), "-p", str(profiles)]) == 1

    def test_missing_job_description_file(self, tmp_path):
        assert main(["-j", str(tmp_path / "missing.txt"), "-p", str(tmp_path / "p.json")]) == 1
