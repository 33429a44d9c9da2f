# app/services/pricing.py
"""
Battery pricing: converts token counts for a model into battery units.

1 battery unit (BU) is roughly $0.001 of provider cost including margin.
Rates are BU per 1K tokens. Cached requests bill their input tokens at the
model's cached rate, which is never above the regular rate.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_CEILING
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, Optional

import yaml

from app.config import get_settings
from app.services.exceptions import UnknownModel

logger = logging.getLogger(__name__)

THOUSAND = Decimal("1000")
DEFAULT_CACHE_DISCOUNT = Decimal("0.5")


@dataclass(frozen=True)
class ModelPricing:
    """Battery rates for one pricing key."""
    battery_per_k_token: Decimal
    display_name: str
    tier: str = "mid"  # budget, mid, premium, ultra
    cached_battery_per_k_token: Optional[Decimal] = None

    def __post_init__(self):
        if self.battery_per_k_token < 0:
            raise ValueError("battery_per_k_token must be >= 0")
        if self.cached_battery_per_k_token is not None and not (
            0 <= self.cached_battery_per_k_token <= self.battery_per_k_token
        ):
            raise ValueError("cached_battery_per_k_token must be between 0 and battery_per_k_token")

    @property
    def cached_rate(self) -> Decimal:
        if self.cached_battery_per_k_token is not None:
            return self.cached_battery_per_k_token
        return self.battery_per_k_token * DEFAULT_CACHE_DISCOUNT


@dataclass(frozen=True)
class PricingTable:
    """Pricing keys mapped to their battery rates."""
    prices: Dict[str, ModelPricing] = field(default_factory=dict)

    def get_pricing(self, model: str) -> ModelPricing:
        """
        Resolve the pricing for a model id, normalizing provider ids first.

        Raises:
            UnknownModel: if neither the raw nor the normalized id is priced
        """
        if model in self.prices:
            return self.prices[model]
        normalized = normalize_model_id(model)
        if normalized in self.prices:
            return self.prices[normalized]
        raise UnknownModel(model)

    def merged(self, overrides: Dict[str, ModelPricing]) -> "PricingTable":
        return PricingTable({**self.prices, **overrides})


def _pricing(rate: str, name: str, tier: str, cached: Optional[str] = None) -> ModelPricing:
    return ModelPricing(
        battery_per_k_token=Decimal(rate),
        display_name=name,
        tier=tier,
        cached_battery_per_k_token=Decimal(cached) if cached is not None else None,
    )


PRICING_TABLE = PricingTable({
    # Budget
    "deepseek-chat": _pricing("2.23", "DeepSeek Chat", "budget", cached="1.91"),
    "gpt-4.1-nano": _pricing("0.82", "GPT-4.1 Nano", "budget"),
    "gpt-4o-mini": _pricing("1.22", "GPT-4o Mini", "budget"),
    "gemini-1.5-flash": _pricing("0.61", "Gemini Flash", "budget"),
    "gemini-2.0-flash": _pricing("0.82", "Gemini 2.0 Flash", "budget"),
    "gemini-2.5-flash": _pricing("1.22", "Gemini 2.5 Flash", "budget"),
    # Mid
    "gpt-4.1-mini": _pricing("3.25", "GPT-4.1 Mini", "mid"),
    "gpt-4o": _pricing("20.32", "GPT-4o", "mid"),
    "grok-3-mini": _pricing("1.3", "Grok 3 Mini", "mid"),
    "claude-haiku-3.5": _pricing("7.8", "Claude Haiku 3.5", "mid"),
    "claude-sonnet-3.5": _pricing("29.25", "Claude Sonnet 3.5", "mid"),
    "claude-sonnet-3": _pricing("29.25", "Claude Sonnet 3", "mid"),
    # Premium
    "gpt-4.1": _pricing("16.25", "GPT-4.1", "premium"),
    "o3-mini": _pricing("8.94", "OpenAI o3 Mini", "premium"),
    "gemini-1.5-pro": _pricing("10.16", "Gemini Pro", "premium"),
    "gemini-2.5-pro": _pricing("18.29", "Gemini 2.5 Pro", "premium"),
    "grok-3": _pricing("29.25", "Grok 3", "premium"),
    "claude-opus-3": _pricing("146.25", "Claude Opus 3", "premium"),
    # Ultra
    "claude-sonnet-4": _pricing("29.25", "Claude Sonnet", "ultra"),
    "claude-opus-4": _pricing("146.25", "Claude Opus", "ultra"),
    "o3": _pricing("16.25", "OpenAI o3", "ultra"),
})


# Substring rules for provider model ids, checked in order
_CLAUDE_RULES = (
    (("haiku", "3-5"), "claude-haiku-3.5"),
    (("opus-4",), "claude-opus-4"),
    (("sonnet-4",), "claude-sonnet-4"),
    (("3-7-sonnet",), "claude-sonnet-4"),
    (("3-5-sonnet",), "claude-sonnet-3.5"),
    (("3-opus",), "claude-opus-3"),
    (("3-sonnet",), "claude-sonnet-3"),
)

_GEMINI_FAMILIES = ("1.5-flash", "1.5-pro", "2.0-flash", "2.5-flash", "2.5-pro")


def normalize_model_id(model: str) -> str:
    """
    Map a provider model id onto a pricing key.

    Provider prefixes ("openai/gpt-4o") are dropped, dated Claude ids
    collapse to their family, and dashed Gemini versions are dotted.
    Ids that match no rule are returned unchanged.
    """
    model_id = model.strip().lower()
    if "/" in model_id:
        model_id = model_id.split("/", 1)[1]

    if model_id.startswith("claude-"):
        for needles, key in _CLAUDE_RULES:
            if all(needle in model_id for needle in needles):
                return key

    if "gemini" in model_id:
        dotted = model_id.replace("-1-5-", "-1.5-").replace("-2-0-", "-2.0-").replace("-2-5-", "-2.5-")
        for family in _GEMINI_FAMILIES:
            if f"gemini-{family}" in dotted:
                return f"gemini-{family}"

    if model_id.startswith("deepseek-chat"):
        return "deepseek-chat"

    return model_id


def is_free_model(model: str, prefixes: Optional[Iterable[str]] = None) -> bool:
    """Local/self-hosted models are identified by their provider prefix and never billed"""
    if prefixes is None:
        prefixes = get_settings().FREE_MODEL_PREFIXES
    model_id = model.strip().lower()
    return any(model_id.startswith(prefix.lower()) for prefix in prefixes)


def load_pricing_overrides(path: str) -> Dict[str, ModelPricing]:
    """
    Load extra or replacement pricing entries from YAML.

    Expected layout:

        models:
          gpt-4o-mini:
            battery_per_k_token: 1.22
            cached_battery_per_k_token: 0.61   # optional
            display_name: GPT-4o Mini           # optional
            tier: budget                        # optional
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Pricing overrides file not found: {path}")

    with config_path.open("r") as f:
        data = yaml.safe_load(f) or {}

    models = data.get("models")
    if not isinstance(models, dict):
        raise ValueError("Pricing overrides must define a 'models' mapping")

    overrides = {}
    for key, entry in models.items():
        if not isinstance(entry, dict) or "battery_per_k_token" not in entry:
            raise ValueError(f"Pricing entry '{key}' must define battery_per_k_token")
        cached = entry.get("cached_battery_per_k_token")
        overrides[str(key).lower()] = ModelPricing(
            battery_per_k_token=Decimal(str(entry["battery_per_k_token"])),
            display_name=entry.get("display_name", key),
            tier=entry.get("tier", "mid"),
            cached_battery_per_k_token=Decimal(str(cached)) if cached is not None else None,
        )
    return overrides


@lru_cache()
def get_pricing_table() -> PricingTable:
    settings = get_settings()
    if not settings.PRICING_OVERRIDES_FILE:
        return PRICING_TABLE
    overrides = load_pricing_overrides(settings.PRICING_OVERRIDES_FILE)
    logger.info(f"Loaded {len(overrides)} pricing overrides from {settings.PRICING_OVERRIDES_FILE}")
    return PRICING_TABLE.merged(overrides)


def calculate_battery_usage(
    model: str,
    input_tokens: int,
    output_tokens: int,
    cached: bool = False,
    table: Optional[PricingTable] = None,
) -> int:
    """
    Battery cost of one model invocation, rounded up to a whole unit.

    Free/local models cost 0. Unknown models raise UnknownModel rather
    than falling back to a guessed rate.
    """
    if input_tokens < 0 or output_tokens < 0:
        raise ValueError("Token counts must be >= 0")
    if is_free_model(model):
        return 0

    pricing = (table or get_pricing_table()).get_pricing(model)
    input_rate = pricing.cached_rate if cached else pricing.battery_per_k_token

    raw = (
        Decimal(input_tokens) / THOUSAND * input_rate
        + Decimal(output_tokens) / THOUSAND * pricing.battery_per_k_token
    )
    return int(raw.to_integral_value(rounding=ROUND_CEILING))
