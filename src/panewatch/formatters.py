"""
Pure formatting functions for display.

These functions convert values (seconds, tokens, costs) into
human-readable strings. They have no domain logic.
"""

from typing import Optional


def format_duration(seconds: float) -> str:
    """Format duration in seconds to human readable (s/m/h/d).

    Examples: 45s, 6.3m, 2.5h, 1.2d
    """
    if seconds < 60:
        return f"{int(max(seconds, 0))}s"
    elif seconds < 3600:
        return f"{seconds / 60:.1f}m"
    elif seconds < 86400:
        return f"{seconds / 3600:.1f}h"
    else:
        return f"{seconds / 86400:.1f}d"


def format_ago(seconds: Optional[float]) -> str:
    """Format an age in seconds as "30s ago", "5m ago", "2.5h ago" or "never"."""
    if seconds is None:
        return "never"
    if seconds < 60:
        return f"{int(max(seconds, 0))}s ago"
    elif seconds < 3600:
        return f"{int(seconds // 60)}m ago"
    else:
        return f"{seconds / 3600:.1f}h ago"


def format_tokens(tokens: int) -> str:
    """Format token count to human readable (k/M).

    Examples: 500 -> "500", 1500 -> "1.5k", 1_500_000 -> "1.5M"
    """
    if tokens >= 1_000_000:
        return f"{tokens / 1_000_000:.1f}M"
    elif tokens >= 1_000:
        return f"{tokens / 1_000:.1f}k"
    else:
        return str(tokens)


def format_cost(cost_usd: Optional[float]) -> str:
    """Format cost in USD, with more precision for small amounts.

    Examples: $12.34, $0.123, $0.0042, "-" when unknown
    """
    if cost_usd is None:
        return "-"
    if cost_usd >= 1.0:
        return f"${cost_usd:.2f}"
    elif cost_usd >= 0.01:
        return f"${cost_usd:.3f}"
    elif cost_usd > 0:
        return f"${cost_usd:.4f}"
    else:
        return "$0"


def truncate(text: Optional[str], width: int) -> str:
    """Cut text to width, marking the cut with an ellipsis."""
    if not text:
        return ""
    if len(text) <= width:
        return text
    return text[: max(width - 1, 0)] + "…"
