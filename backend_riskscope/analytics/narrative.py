"""
Narrative synthesizer: summary + detailed analysis for a scored subject.

Prefers an injected TextGenerator (single-turn completion). The prompt asks
for two labeled sections, SUMMARY: and DETAILED ANALYSIS:, extracted by
section-boundary matching. A generator that raises, times out, returns text
without both sections, or returns sections far outside the expected length
(check_shape) is retried, then replaced by templated text banded on
the score (Low < 30 <= Medium < 70 <= High). Templates are pure functions of
score, subject, platform, and metrics.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from backend_riskscope.analytics.models import (
    AssetStatus,
    BlockchainActivity,
    NarrativeSource,
    Platform,
    SocialMetrics,
)
from backend_riskscope.analytics.risk_engine import BAND_HIGH, BAND_LOW, BAND_MEDIUM, risk_band
from backend_riskscope.core.exceptions import NarrativeGenerationFailure
from backend_riskscope.core.retry import (
    DEFAULT_ATTEMPTS,
    DEFAULT_BACKOFF_SEC,
    call_with_retries,
)
from backend_riskscope.ingestion.base import TextGenerator
from backend_riskscope.riskscope_logging import get_logger

logger = get_logger(__name__)

SUMMARY_LABEL = "SUMMARY:"
DETAILED_LABEL = "DETAILED ANALYSIS:"
DEFAULT_NARRATIVE_TIMEOUT_SEC = 30.0

_LABEL_MARKUP_RE = re.compile(
    r"(?:(?<!\S)[*#]+[ \t]*)?(SUMMARY|DETAILED ANALYSIS)[ \t]*\*{0,3}[ \t]*:(?:\*{1,3}(?=\s))?"
)
_SUMMARY_RE = re.compile(r"SUMMARY:\s*(.*?)\s*(?=DETAILED ANALYSIS:|\Z)", re.DOTALL)
_DETAILED_RE = re.compile(r"DETAILED ANALYSIS:\s*(.*?)\s*\Z", re.DOTALL)
_SENTENCE_END_RE = re.compile(r"[.!?](?:\s|$)")

# Generated sections outside these bounds count as a failed attempt
MIN_SUMMARY_SENTENCES = 1
MAX_SUMMARY_SENTENCES = 6
MIN_DETAILED_WORDS = 75
MAX_DETAILED_WORDS = 450


@dataclass(frozen=True)
class Narrative:
    summary: str
    detailed_analysis: str
    source: NarrativeSource = NarrativeSource.TEMPLATE


# -----------------------------------------------------------------------------
# Prompt and response parsing
# -----------------------------------------------------------------------------


def _format_assets(social: SocialMetrics) -> str:
    if not social.promoted_assets:
        return "none"
    return ", ".join(
        f"{a.name or 'unnamed'} ({a.status.value}, {a.performance_percentage:+.1f}%)"
        for a in social.promoted_assets
    )


def build_prompt(
    score: int,
    handle: str,
    platform: Platform,
    social: SocialMetrics,
    chain: BlockchainActivity,
) -> str:
    """Prompt embedding subject, platform, score, and every normalized metric."""
    counts = social.count_by_status()
    return (
        "Analyze this crypto influencer and provide a detailed risk assessment. "
        "Be thorough but concise.\n\n"
        f"Influencer: @{handle}\n"
        f"Platform: {platform.display_name}\n"
        f"Risk Score: {score}/100 (higher is riskier)\n\n"
        "Blockchain data:\n"
        f"- Wallet address: {chain.address or 'Unknown'}\n"
        f"- Rug pull count: {chain.rug_pull_count}\n"
        f"- Dumping behavior: {chain.dumping_behavior.value}\n"
        f"- MEV activity detected: {'Yes' if chain.mev_detected else 'No'}\n\n"
        "Social metrics:\n"
        f"- Followers: {social.followers:,}\n"
        f"- Real follower percentage: {social.real_follower_percentage:.1f}%\n"
        f"- Engagement rate: {social.engagement_rate:.2f}%\n"
        f"- Promoted assets that rug-pulled: {counts[AssetStatus.RUGPULL]}\n"
        f"- Promoted assets still active: {counts[AssetStatus.ACTIVE]}\n"
        f"- Promoted assets that declined: {counts[AssetStatus.DECLINED]}\n"
        f"- Promoted assets: {_format_assets(social)}\n\n"
        "Provide the analysis in exactly two sections, each starting with its label.\n\n"
        f"{SUMMARY_LABEL} 2-4 sentences of professional assessment of the influencer's "
        "trustworthiness, citing specific numbers and any red flags.\n\n"
        f"{DETAILED_LABEL} One paragraph of 150-300 words examining:\n"
        "1. Their blockchain transaction patterns\n"
        "2. Their promotion history and what it indicates\n"
        "3. Their follower authenticity and engagement metrics\n"
        "4. A closing investor advice statement on whether to trust this influencer\n"
    )


def parse_sections(text: str | None) -> tuple[str, str] | None:
    """
    Extract (summary, detailed_analysis) from generator output.

    Returns None when either label is missing, out of order, or its section is empty.
    Markdown emphasis (* and #) directly around a label is ignored; the section
    text itself is kept as written.
    """
    if not text or not text.strip():
        return None
    cleaned = _LABEL_MARKUP_RE.sub(r"\1:", text)
    summary_match = _SUMMARY_RE.search(cleaned)
    detailed_match = _DETAILED_RE.search(cleaned)
    if summary_match is None or detailed_match is None:
        return None
    if summary_match.start() > detailed_match.start():
        return None
    summary = summary_match.group(1).strip()
    detailed = detailed_match.group(1).strip()
    if not summary or not detailed:
        return None
    return summary, detailed


# -----------------------------------------------------------------------------
# Templated fallback
# -----------------------------------------------------------------------------

_LOW_SUMMARY = (
    "@{handle} on {platform} demonstrates a high level of trustworthiness, with a risk score of {score}/100. "
    "Around {real_pct} of their {followers} followers appear authentic, and {rugpulls} of {total} promoted "
    "assets have been linked to rug pulls. "
    "On-chain activity shows {rug_count} rug-pull events and {dumping} dumping behavior."
)

_LOW_DETAILED = (
    "Our review of @{handle} on {platform} found a profile consistent with a credible and responsible promoter. "
    "Blockchain analysis of the associated wallet ({address}) recorded {rug_count} rug-pull events, "
    "{dumping} dumping behavior, and {mev_phrase}. "
    "Positions in promoted tokens appear to be held for extended periods rather than sold into the buying "
    "pressure that follows a promotion, which suggests genuine belief in the projects being discussed. "
    "The promotion history covers {total} assets: {active} remain active, {declined} have declined in value, "
    "and {rugpulls} ended in a rug pull. "
    "That record points to a preference for established or legitimate projects, with losses that look like "
    "ordinary market risk rather than coordinated exits. "
    "The audience also looks healthy. "
    "Roughly {real_pct} of the {followers} followers appear to be real accounts, and an engagement rate of "
    "{engagement} indicates that posts reach people who actually read and respond to them. "
    "Neither metric shows the sudden spikes or hollow reach typical of purchased followers or bot-driven "
    "amplification. "
    "The on-chain record and the quality of the audience together support a risk score of {score}/100. "
    "Investor advice: this influencer can reasonably be treated as a trustworthy source of ideas, but every "
    "recommendation should still be checked against your own research and risk tolerance."
)

_MEDIUM_SUMMARY = (
    "@{handle} on {platform} shows mixed reliability, with a risk score of {score}/100. "
    "{rugpulls} of {total} promoted assets collapsed in rug pulls, and the linked wallet shows {dumping} "
    "dumping behavior across {rug_count} rug-pull events. "
    "Exercise caution when following their recommendations."
)

_MEDIUM_DETAILED = (
    "Our review of @{handle} on {platform} produced a mixed picture that calls for additional scrutiny. "
    "Blockchain analysis of the associated wallet ({address}) recorded {rug_count} rug-pull events and "
    "{dumping} dumping behavior, with {mev_phrase}. "
    "There is some evidence of selling after promotions, although the pattern is not consistent enough to "
    "confirm a deliberate pump-and-dump strategy. "
    "The promotion history covers {total} assets: {active} remain active, {declined} have declined in value, "
    "and {rugpulls} ended in a rug pull. "
    "That blend of successes and failures suggests limited due diligence on the projects being promoted, or "
    "a willingness to accept paid promotions without much vetting. "
    "The audience raises further questions. "
    "Roughly {real_pct} of the {followers} followers appear to be real accounts, and the engagement rate of "
    "{engagement} suggests that part of the visible reach may be inflated or automated. "
    "Engagement of this kind can make a promotion look far more popular than it really is. "
    "These signals combine into a risk score of {score}/100, placing the account in the medium-risk band. "
    "Investor advice: be careful with this account, verify every project independently, and avoid acting "
    "on its calls without additional research."
)

_HIGH_SUMMARY = (
    "HIGH RISK: @{handle} on {platform} shows patterns consistent with pump-and-dump schemes, with a risk "
    "score of {score}/100. "
    "The linked wallet is tied to {rug_count} rug-pull events, and {rugpulls} of {total} promoted assets "
    "collapsed. "
    "We strongly advise that investors do not follow this account's recommendations."
)

_HIGH_DETAILED = (
    "Our review of @{handle} on {platform} found a pattern of behavior that puts follower investments at "
    "significant risk. "
    "Blockchain analysis of the associated wallet ({address}) recorded {rug_count} rug-pull events and "
    "{dumping} dumping behavior, with {mev_phrase}. "
    "The wallet repeatedly sells shortly after promotions, which is the signature of a pump-and-dump "
    "operation in which followers provide the exit liquidity. "
    "The promotion history covers {total} assets: {active} remain active, {declined} have declined in value, "
    "and {rugpulls} ended in a rug pull. "
    "Many of the promoted projects failed completely, and the failures cluster in a way that is hard to "
    "explain as bad luck. "
    "The audience also appears to be heavily manufactured. "
    "Only about {real_pct} of the {followers} followers appear to be real accounts, and the engagement rate "
    "of {engagement} points to coordinated or automated activity around promotional posts. "
    "Inflated reach of this kind is commonly used to create urgency and social proof before a dump. "
    "These findings combine into a risk score of {score}/100, well inside the high-risk band. "
    "Investor advice: do not follow this influencer's recommendations, do not buy tokens they promote, and "
    "treat any new promotion from this account as a likely exit event."
)

_TEMPLATES = {
    BAND_LOW: (_LOW_SUMMARY, _LOW_DETAILED),
    BAND_MEDIUM: (_MEDIUM_SUMMARY, _MEDIUM_DETAILED),
    BAND_HIGH: (_HIGH_SUMMARY, _HIGH_DETAILED),
}


def _template_values(
    score: int,
    handle: str,
    platform: Platform,
    social: SocialMetrics,
    chain: BlockchainActivity,
) -> dict[str, str]:
    counts = social.count_by_status()
    return {
        "handle": handle,
        "platform": platform.display_name,
        "score": str(score),
        "followers": f"{social.followers:,}",
        "real_pct": f"{social.real_follower_percentage:.1f}%",
        "engagement": f"{social.engagement_rate:.2f}%",
        "total": str(len(social.promoted_assets)),
        "rugpulls": str(counts[AssetStatus.RUGPULL]),
        "active": str(counts[AssetStatus.ACTIVE]),
        "declined": str(counts[AssetStatus.DECLINED]),
        "rug_count": str(chain.rug_pull_count),
        "dumping": chain.dumping_behavior.value,
        "mev_phrase": "signs of MEV activity" if chain.mev_detected else "no MEV activity",
        "address": chain.address or "address unknown",
    }


def fallback_narrative(
    score: int,
    handle: str,
    platform: Platform,
    social: SocialMetrics,
    chain: BlockchainActivity,
) -> Narrative:
    """Deterministic templated narrative for the score's band."""
    summary_tpl, detailed_tpl = _TEMPLATES[risk_band(score)]
    values = _template_values(score, handle, platform, social, chain)
    return Narrative(
        summary=summary_tpl.format(**values),
        detailed_analysis=detailed_tpl.format(**values),
        source=NarrativeSource.TEMPLATE,
    )


# -----------------------------------------------------------------------------
# Synthesis
# -----------------------------------------------------------------------------


def check_shape(summary: str, detailed: str) -> str | None:
    """Reason the sections are unusable, or None when both are within bounds."""
    sentences = len(_SENTENCE_END_RE.findall(summary))
    if not MIN_SUMMARY_SENTENCES <= sentences <= MAX_SUMMARY_SENTENCES:
        return f"summary has {sentences} sentences"
    words = len(detailed.split())
    if not MIN_DETAILED_WORDS <= words <= MAX_DETAILED_WORDS:
        return f"detailed analysis has {words} words"
    return None


async def _generate_once(text_generator: TextGenerator, prompt: str) -> tuple[str, str]:
    text = await text_generator.complete(prompt)
    sections = parse_sections(text)
    if sections is None:
        raise NarrativeGenerationFailure("generator response missing SUMMARY/DETAILED ANALYSIS sections")
    problem = check_shape(*sections)
    if problem is not None:
        raise NarrativeGenerationFailure(f"generator response out of shape: {problem}")
    return sections


async def synthesize(
    score: int,
    handle: str,
    platform: Platform,
    social: SocialMetrics,
    chain: BlockchainActivity,
    text_generator: TextGenerator | None = None,
    *,
    attempts: int = DEFAULT_ATTEMPTS,
    backoff_sec: float = DEFAULT_BACKOFF_SEC,
    timeout_sec: float | None = DEFAULT_NARRATIVE_TIMEOUT_SEC,
) -> Narrative:
    """
    Produce summary and detailed analysis. Never raises except on cancellation.

    With text_generator None the templated narrative is returned directly.
    """
    if text_generator is None:
        logger.debug("narrative_template_no_generator", subject=handle, score=score)
        return fallback_narrative(score, handle, platform, social, chain)

    prompt = build_prompt(score, handle, platform, social, chain)
    try:
        summary, detailed = await call_with_retries(
            lambda: _generate_once(text_generator, prompt),
            operation="narrative",
            attempts=attempts,
            backoff_sec=backoff_sec,
            timeout_sec=timeout_sec,
            subject=handle,
        )
    except Exception as e:
        failure = e if isinstance(e, NarrativeGenerationFailure) else NarrativeGenerationFailure(repr(e))
        logger.warning(
            "narrative_fallback_template",
            subject=handle,
            score=score,
            error=failure.message,
        )
        return fallback_narrative(score, handle, platform, social, chain)

    logger.info("narrative_generated", subject=handle, score=score)
    return Narrative(summary=summary, detailed_analysis=detailed, source=NarrativeSource.GENERATED)
