"""
On-demand token cost for a pane.

Never runs as part of a refresh cycle by itself: only an explicit request
(the `cost` command, or RefreshEngine.request_cost) triggers a fetch.
Session log paths are cached per working directory.
"""

import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple

from .errors import NoLogFound
from .fact_cache import FactCache
from .logging_config import get_logger
from .registry import PaneState
from .session_logs import TokenUsage, find_latest_session_log, read_token_usage
from .settings import MonitorSettings
from .status_constants import PROVIDER_CLAUDE, PROVIDER_GEMINI


log = get_logger(__name__)


@dataclass(frozen=True)
class Pricing:
    """USD per million tokens."""
    input: float
    output: float
    cache_write: float
    cache_read: float

    @classmethod
    def from_rates(cls, input: float, output: float) -> "Pricing":
        """Anthropic-style pricing: cache writes 1.25x input, reads 0.1x."""
        return cls(input, output, input * 1.25, input * 0.1)

    def cost(self, usage: TokenUsage) -> float:
        return (
            usage.input_tokens * self.input
            + usage.output_tokens * self.output
            + usage.cache_creation_tokens * self.cache_write
            + usage.cache_read_tokens * self.cache_read
        ) / 1_000_000


DEFAULT_PRICING = Pricing.from_rates(3.0, 15.0)

PROVIDER_PRICING: Dict[str, Pricing] = {
    PROVIDER_CLAUDE: DEFAULT_PRICING,
    PROVIDER_GEMINI: Pricing(1.25, 5.0, 1.25, 0.3125),
}

# First match wins, so more specific families come first
MODEL_PRICING: Tuple[Tuple[Tuple[str, ...], Pricing], ...] = (
    (("opus-4-5", "opus-4.5"), Pricing.from_rates(5.0, 25.0)),
    (("opus-4", "opus"), Pricing.from_rates(15.0, 75.0)),
    (("sonnet",), Pricing.from_rates(3.0, 15.0)),
    (("haiku-4-5", "haiku-4.5"), Pricing.from_rates(1.0, 5.0)),
    (("haiku-3-5", "3-5-haiku", "haiku-3.5"), Pricing.from_rates(0.8, 4.0)),
    (("haiku",), Pricing.from_rates(0.25, 1.25)),
)


def get_pricing(provider: str, model: Optional[str] = None) -> Pricing:
    """Pricing for a model, falling back to the provider's default."""
    if model:
        lowered = model.lower()
        for needles, pricing in MODEL_PRICING:
            if any(n in lowered for n in needles):
                return pricing
    return PROVIDER_PRICING.get(provider, DEFAULT_PRICING)


@dataclass(frozen=True)
class CostFigure:
    """Token usage and its estimated price for one session log."""
    provider: str
    model: Optional[str]
    usage: TokenUsage
    cost_usd: float
    log_path: str
    fetched_at: float

    def to_dict(self) -> dict:
        data = asdict(self)
        data["total_tokens"] = self.usage.total_tokens
        return data


# Only providers whose logs are keyed by project directory can be located
LOCATABLE_PROVIDERS = frozenset({PROVIDER_CLAUDE})


class CostOnDemand:
    """Compute cost for a pane when explicitly asked.

    Args:
        settings: Monitor settings (log path TTL)
        log_cache: Session log path by working directory
        projects_path: Override for ~/.claude/projects
        cwd_lookup: Agent pid -> working directory (the resolver's cwd cache)
    """

    def __init__(
        self,
        settings: Optional[MonitorSettings] = None,
        log_cache: Optional[FactCache] = None,
        projects_path: Optional[Path] = None,
        cwd_lookup: Optional[Callable[[int], Optional[str]]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings or MonitorSettings()
        self.log_cache = log_cache if log_cache is not None else FactCache()
        self.projects_path = projects_path
        self.cwd_lookup = cwd_lookup
        self._clock = clock

    def working_directory(self, state: PaneState) -> Optional[str]:
        """Agent's cwd if known, else the pane's current path."""
        if state.agent_pid is not None and self.cwd_lookup is not None:
            cwd = self.cwd_lookup(state.agent_pid)
            if cwd:
                return cwd
        return state.pane.current_path or None

    def locate_log(self, cwd: str) -> Path:
        return self.log_cache.get_or_fetch(
            cwd,
            self.settings.log_path_ttl,
            lambda: find_latest_session_log(cwd, self.projects_path),
        )

    def fetch_cost(self, state: PaneState, cwd: Optional[str] = None) -> CostFigure:
        """Compute the cost of the pane's current session.

        Raises:
            NoLogFound: provider has no locatable logs, or none exist for the cwd
            CostParseError: the log has no usable usage records
        """
        if state.provider not in LOCATABLE_PROVIDERS:
            raise NoLogFound(f"session logs are not located for provider {state.provider!r}")
        cwd = cwd or self.working_directory(state)
        if not cwd:
            raise NoLogFound(f"no working directory for {state.pane.display_name}")

        path = self.locate_log(cwd)
        usage = read_token_usage(path)
        pricing = get_pricing(state.provider, usage.model)
        figure = CostFigure(
            provider=state.provider,
            model=usage.model,
            usage=usage,
            cost_usd=pricing.cost(usage),
            log_path=str(path),
            fetched_at=self._clock(),
        )
        log.debug("cost for %s: $%.4f (%s)", state.pane.display_name, figure.cost_usd, path.name)
        return figure
