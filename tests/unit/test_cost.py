"""
Tests for pricing and on-demand cost lookups.
"""

import json
import os

import pytest

from panewatch.cost import (
    DEFAULT_PRICING,
    CostOnDemand,
    Pricing,
    get_pricing,
)
from panewatch.errors import CostParseError, NoLogFound
from panewatch.fact_cache import FactCache
from panewatch.registry import PaneState
from panewatch.session_logs import TokenUsage
from panewatch.settings import MonitorSettings
from panewatch.status_constants import PROVIDER_CLAUDE, PROVIDER_GEMINI, STATUS_WORKING
from tests.fixtures import FakeClock, make_pane


def state_for(path="/home/dev/api", provider=PROVIDER_CLAUDE, agent_pid=None):
    return PaneState(
        pane=make_pane(current_path=path),
        provider=provider,
        status=STATUS_WORKING,
        status_since=0,
        last_seen=0,
        agent_pid=agent_pid,
    )


def write_log(projects, cwd, name="session.jsonl", input_tokens=1_000_000, output_tokens=0,
              model="claude-sonnet-4-5"):
    project = projects / cwd.replace("/", "-").replace("_", "-")
    project.mkdir(parents=True, exist_ok=True)
    path = project / name
    path.write_text(json.dumps({
        "message": {
            "model": model,
            "usage": {"input_tokens": input_tokens, "output_tokens": output_tokens},
        }
    }) + "\n")
    return path


class TestPricing:
    """Test price tables"""

    def test_from_rates_cache_multipliers(self):
        pricing = Pricing.from_rates(3.0, 15.0)
        assert pricing.cache_write == pytest.approx(3.75)
        assert pricing.cache_read == pytest.approx(0.3)

    def test_cost_per_million(self):
        usage = TokenUsage(input_tokens=1_000_000, output_tokens=100_000,
                           cache_creation_tokens=1_000_000, cache_read_tokens=1_000_000)
        assert DEFAULT_PRICING.cost(usage) == pytest.approx(3.0 + 1.5 + 3.75 + 0.3)

    @pytest.mark.parametrize("model,input_rate", [
        ("claude-opus-4-5-20251101", 5.0),
        ("claude-opus-4-1-20250805", 15.0),
        ("claude-sonnet-4-5-20250929", 3.0),
        ("claude-haiku-4-5-20251001", 1.0),
        ("claude-3-5-haiku-20241022", 0.8),
        ("claude-3-haiku-20240307", 0.25),
    ])
    def test_model_families(self, model, input_rate):
        assert get_pricing(PROVIDER_CLAUDE, model).input == input_rate

    def test_unknown_model_uses_provider_default(self):
        assert get_pricing(PROVIDER_GEMINI, "gemini-2.5-pro").input == 1.25
        assert get_pricing("codex", None) == DEFAULT_PRICING


class TestCostOnDemand:
    """Test CostOnDemand.fetch_cost"""

    def test_fetch_from_pane_path(self, tmp_path):
        write_log(tmp_path, "/home/dev/api", input_tokens=2_000_000, output_tokens=1_000_000)
        fetcher = CostOnDemand(projects_path=tmp_path, clock=lambda: 99.0)
        figure = fetcher.fetch_cost(state_for())
        assert figure.cost_usd == pytest.approx(2 * 3.0 + 15.0)
        assert figure.model == "claude-sonnet-4-5"
        assert figure.usage.total_tokens == 3_000_000
        assert figure.fetched_at == 99.0
        assert figure.to_dict()["total_tokens"] == 3_000_000

    def test_agent_cwd_preferred(self, tmp_path):
        write_log(tmp_path, "/home/dev/real")
        fetcher = CostOnDemand(projects_path=tmp_path, cwd_lookup=lambda pid: "/home/dev/real")
        figure = fetcher.fetch_cost(state_for(path="/home/dev/elsewhere", agent_pid=4242))
        assert "-home-dev-real" in figure.log_path

    def test_explicit_cwd(self, tmp_path):
        write_log(tmp_path, "/srv/app")
        figure = CostOnDemand(projects_path=tmp_path).fetch_cost(state_for(), cwd="/srv/app")
        assert "-srv-app" in figure.log_path

    def test_non_claude_provider(self, tmp_path):
        with pytest.raises(NoLogFound):
            CostOnDemand(projects_path=tmp_path).fetch_cost(state_for(provider=PROVIDER_GEMINI))

    def test_no_working_directory(self, tmp_path):
        with pytest.raises(NoLogFound):
            CostOnDemand(projects_path=tmp_path).fetch_cost(state_for(path=""))

    def test_no_logs(self, tmp_path):
        with pytest.raises(NoLogFound):
            CostOnDemand(projects_path=tmp_path).fetch_cost(state_for())

    def test_unparseable_log(self, tmp_path):
        project = tmp_path / "-home-dev-api"
        project.mkdir()
        (project / "s.jsonl").write_text("{}\n")
        with pytest.raises(CostParseError):
            CostOnDemand(projects_path=tmp_path).fetch_cost(state_for())

    def test_log_location_cached(self, tmp_path):
        clock = FakeClock()
        first = write_log(tmp_path, "/home/dev/api", name="a.jsonl")
        fetcher = CostOnDemand(
            settings=MonitorSettings(log_path_ttl=60),
            log_cache=FactCache(clock=clock),
            projects_path=tmp_path,
        )
        assert fetcher.locate_log("/home/dev/api") == first

        second = write_log(tmp_path, "/home/dev/api", name="b.jsonl")
        second.touch()
        assert fetcher.locate_log("/home/dev/api") == first

        clock.advance(61)
        os.utime(first, (1, 1))
        assert fetcher.locate_log("/home/dev/api") == second
