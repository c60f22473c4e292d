"""
Insights Service

Turns a dashboard payload (and its period-over-period deltas) into 3-5 short
insights written by Claude. Each insight line starts with one of four markers:

    🔥 alert        urgent issue
    ✅ win          something to celebrate and scale
    ⚠️ warning      sign to watch
    💡 opportunity  something to explore

Generated text is cached for a few minutes, keyed on the tab, period and
metric values, so re-opening the same view does not call the model again.
"""
from typing import Any, Dict, List, Optional

from anthropic import AsyncAnthropic

from app.config import Settings, get_settings
from app.models.dashboard import Insight, InsightType, MetricWithDelta
from app.utils.cache import VersionedCache
from app.utils.helpers import hash_data
from app.utils.logger import log
from app.utils.retry import retry_async


INSIGHT_MARKERS = {
    "🔥": InsightType.ALERT,
    "✅": InsightType.WIN,
    "\u26a0\ufe0f": InsightType.WARNING,
    "\u26a0": InsightType.WARNING,  # without the emoji variation selector
    "💡": InsightType.OPPORTUNITY,
}

NOT_CONFIGURED_MESSAGE = "⚠️ AI insights not configured. Add ANTHROPIC_API_KEY to environment variables."

INSIGHTS_SYSTEM_PROMPT = """You are a sharp business analyst for a DTC e-commerce portfolio with 3 brands: Fireblood (supplements), Top G (merch), and DNG (comics).

Your job: Analyze the data and give 3-5 concise, actionable insights. Be direct and specific.

Rules:
1. Start each insight with an emoji:
   - 🔥 Urgent issues requiring immediate attention
   - ✅ Wins to celebrate and scale
   - ⚠️ Warning signs to watch
   - 💡 Opportunities to explore

2. Each insight should be 1-2 sentences max
3. Include specific numbers and percentages
4. Focus on what's changed and why it matters
5. Prioritize insights by business impact
6. Be direct - no fluff, no hedging
7. Metrics marked "not connected" have no data; never treat them as zero

Example format:
🔥 DNG orders down 18% despite 12% traffic increase - conversion issue. Check checkout flow or pricing.
✅ Fireblood ROAS improved from 2.1x to 3.4x - scale ad spend from current levels.
⚠️ Top G average order value dropped £8 (12%) - possible discount overuse or product mix shift."""


def parse_insights(text: str) -> List[Insight]:
    """
    Parse model output into insights.

    Only lines starting with a known marker count; everything else
    (preamble, headings, blank lines) is skipped.
    """
    insights = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped:
            continue

        for marker, insight_type in INSIGHT_MARKERS.items():
            if stripped.startswith(marker):
                body = stripped[len(marker):].lstrip("\ufe0f").strip()
                if body:
                    canonical = "\u26a0\ufe0f" if insight_type == InsightType.WARNING else marker
                    insights.append(Insight(type=insight_type, marker=canonical, text=body))
                break

    return insights


def _money(value: Optional[float], symbol: str) -> str:
    return f"{symbol}{value:,.0f}" if value is not None else "no data"


def build_insights_prompt(
    current_data: Dict[str, Any],
    previous_data: Optional[Dict[str, Any]],
    metrics_with_deltas: List[MetricWithDelta],
    period: str,
    tab: str,
    currency_symbol: str = "£",
) -> str:
    """User prompt: the metrics with their deltas plus the tab's detail tables."""
    parts = [
        f"## Analysis Period: {period}",
        f"## Dashboard View: {tab}",
        "",
        "## Key Metrics (Current vs Previous Period)" if previous_data else "## Key Metrics",
        "",
    ]

    for metric in metrics_with_deltas:
        if not metric.is_live:
            parts.append(f"- {metric.label}: not connected")
            continue
        delta = f" ({metric.delta_percent:+.1f}%)" if metric.delta_percent is not None else ""
        previous = f" | Previous: {metric.previous_value}" if metric.previous_value else ""
        parts.append(f"- {metric.label}: {metric.value}{delta}{previous}")

    if tab == "overview":
        breakdown = current_data.get("brand_breakdown") or []
        if breakdown:
            parts += ["", "## Revenue by Brand"]
            for brand in breakdown:
                suffix = "" if brand.get("is_live") else " (no data)"
                parts.append(f"- {brand.get('name')}: {_money(brand.get('value'), currency_symbol)}{suffix}")

        traffic = [row for row in current_data.get("traffic_overview") or [] if row.get("is_live")]
        if traffic:
            parts += ["", "## Traffic by Brand"]
            for row in traffic:
                conv = f"{row['conv_rate']:.2f}% conversion" if row.get("conv_rate") is not None else "conversion n/a"
                orders = row.get("orders") if row.get("orders") is not None else "n/a"
                parts.append(f"- {row.get('brand')}: {row.get('sessions', 0):,} sessions, {conv}, {orders} orders")

        ads = [row for row in current_data.get("ads_overview") or [] if row.get("is_live")]
        if ads:
            parts += ["", "## Ads Performance"]
            for row in ads:
                roas = f"{row['roas']:.2f}x ROAS" if row.get("roas") is not None else "ROAS n/a"
                parts.append(
                    f"- {row.get('account')}: {_money(row.get('spend'), currency_symbol)} spend, "
                    f"{roas}, {row.get('conversions') or 0:.0f} conversions"
                )
            summary = current_data.get("ads_summary")
            if summary:
                roas = f"{summary['roas']:.2f}x blended ROAS" if summary.get("roas") is not None else "ROAS n/a"
                parts.append(f"- TOTAL: {_money(summary.get('spend'), currency_symbol)} spend, {roas}")

        portfolio = current_data.get("portfolio") or {}
        if portfolio.get("is_partial"):
            parts += ["", f"Note: totals exclude {', '.join(portfolio.get('missing_brands', []))} (no data)."]
    else:
        products = current_data.get("top_products") or []
        if products:
            parts += ["", "## Top Products"]
            for product in products[:5]:
                parts.append(
                    f"- {product.get('name')}: {_money(product.get('revenue'), currency_symbol)} "
                    f"({product.get('units', 0)} units)"
                )

        subs = current_data.get("subscription_metrics")
        if subs:
            parts += ["", "## Subscription Metrics"]
            if subs.get("active_subscribers") is not None:
                parts.append(f"- Active Subscribers: {subs['active_subscribers']:,}")
            if subs.get("mrr") is not None:
                parts.append(f"- MRR: {_money(subs['mrr'], currency_symbol)}")
            if subs.get("churn_rate") is not None:
                parts.append(f"- Churn Rate: {subs['churn_rate']}%")

        scorecard = current_data.get("acquirer_scorecard") or []
        if scorecard:
            parts += ["", "## Acquirer Readiness"]
            for item in scorecard:
                parts.append(f"- {item.get('metric')}: {item.get('current')} (target {item.get('target')}, {item.get('status')})")

    parts += [
        "",
        "---",
        "Based on this data, provide 3-5 actionable insights. "
        "Focus on the most significant changes and their implications.",
    ]
    return "\n".join(parts)


class InsightsService:
    """
    Generates dashboard insights with Claude.

    Without an API key the service still answers, with a single warning line
    telling the operator how to enable it.
    """

    CACHE_PREFIX = "insights:"

    def __init__(
        self,
        cache: VersionedCache,
        settings: Optional[Settings] = None,
        client: Optional[Any] = None,
    ):
        self.cache = cache
        self.settings = settings or get_settings()
        self.enabled = bool(self.settings.enable_llm_insights and self.settings.anthropic_api_key)
        self.client = client

        if self.enabled and self.client is None:
            self.client = AsyncAnthropic(api_key=self.settings.anthropic_api_key)
            log.info("Insights service initialized with Claude")
        elif not self.enabled:
            log.info("LLM insights disabled (no API key or feature disabled)")

    def status(self) -> Dict[str, Any]:
        stats = self._complete.get_retry_stats()
        return {
            "status": "ok",
            "configured": self.enabled,
            "model": self.settings.llm_model,
            "message": "AI insights endpoint ready" if self.enabled else "ANTHROPIC_API_KEY not configured",
            "last_call": stats.to_dict() if stats else None,
        }

    def cache_key(self, tab: str, period: str, metrics_with_deltas: List[MetricWithDelta]) -> str:
        fingerprint = [(m.key, m.value, m.delta_percent) for m in metrics_with_deltas]
        return f"{self.CACHE_PREFIX}{tab}:{period}:{hash_data(fingerprint)}"

    @retry_async(max_attempts=2, base_delay=1.0, max_delay=4.0)
    async def _complete(self, prompt: str) -> str:
        response = await self.client.messages.create(
            model=self.settings.llm_model,
            max_tokens=self.settings.llm_max_tokens,
            system=INSIGHTS_SYSTEM_PROMPT,
            messages=[{"role": "user", "content": prompt}],
        )
        return response.content[0].text

    async def generate(
        self,
        current_data: Dict[str, Any],
        previous_data: Optional[Dict[str, Any]],
        metrics_with_deltas: List[MetricWithDelta],
        period: str,
        tab: str,
    ) -> str:
        """Insight text for one dashboard view (served from cache when fresh)."""
        if not self.enabled:
            return NOT_CONFIGURED_MESSAGE

        key = self.cache_key(tab, period, metrics_with_deltas)
        cached_text = self.cache.get(key)
        if cached_text is not None:
            log.info(f"Insights cache hit for {tab}/{period}")
            return cached_text

        prompt = build_insights_prompt(
            current_data,
            previous_data,
            metrics_with_deltas,
            period,
            tab,
            currency_symbol=self.settings.currency_symbol,
        )
        text = await self._complete(prompt)
        self.cache.set(key, text, self.settings.cache_ttl_insights_seconds)
        log.info(f"Generated {len(parse_insights(text))} insights for {tab}/{period}")
        return text
