"""Tests for the trendwire command line entry point."""

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest

from trendwire.core.models import AggregationResult, CollectorError, SourceKind, Topic
from trendwire.trender import pipeline


def make_result(failed=False):
    error = CollectorError(source="reddit", message="HTTP 503")
    if failed:
        return AggregationResult(
            timestamp=datetime(2024, 6, 1, tzinfo=timezone.utc),
            raw_by_source={SourceKind.REDDIT: error},
            errors=[error]
        )
    return AggregationResult(
        timestamp=datetime(2024, 6, 1, tzinfo=timezone.utc),
        processing_time_ms=12.0,
        raw_by_source={SourceKind.REDDIT: []},
        topics=[Topic(key="ai boom", display_name="AI Boom", score=99.6, platforms={SourceKind.REDDIT})]
    )


class TestMain:
    """Tests for pipeline.main."""

    def test_json_output(self, capsys):
        aggregate = AsyncMock(return_value=make_result())
        argv = ["trendwire", "--sources", "reddit", "--period", "7d", "--article-limit", "0", "--json"]

        with patch.object(pipeline, "aggregate", aggregate), patch("sys.argv", argv), \
                patch.object(pipeline, "setup_logging"):
            exit_code = pipeline.main()

        assert exit_code == 0
        options = aggregate.await_args.args[0]
        assert options.enabled_sources == [SourceKind.REDDIT]
        assert options.period == "7d"
        assert options.article_limit == 0

        output = json.loads(capsys.readouterr().out)
        assert output["summary"]["top_trends"][0] == {
            "rank": 1, "name": "AI Boom", "score": 100, "platforms": ["reddit"],
            "article_count": 0, "categories": ["technology"]
        }

    def test_text_output(self, capsys):
        with patch.object(pipeline, "aggregate", AsyncMock(return_value=make_result())), \
                patch("sys.argv", ["trendwire", "--category", "technology"]), \
                patch.object(pipeline, "setup_logging"):
            assert pipeline.main() == 0

        out = capsys.readouterr().out
        assert "AI Boom (100)" in out

    def test_all_sources_failed_exit_code(self, capsys):
        with patch.object(pipeline, "aggregate", AsyncMock(return_value=make_result(failed=True))), \
                patch("sys.argv", ["trendwire"]), \
                patch.object(pipeline, "setup_logging"):
            assert pipeline.main() == 1

        assert "Error: reddit: HTTP 503" in capsys.readouterr().out

    def test_verbose_sets_debug_level(self, capsys):
        with patch.object(pipeline, "aggregate", AsyncMock(return_value=make_result())), \
                patch("sys.argv", ["trendwire", "--verbose"]), \
                patch.object(pipeline, "setup_logging") as setup_logging:
            assert pipeline.main() == 0

        setup_logging.assert_called_once_with("trender", level="DEBUG")
