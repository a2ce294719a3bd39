"""
Optional LLM oracles: an audit advisor for existing links and a re-ranker for
link suggestions.

Both are injected capabilities. Production wiring calls OpenAI; tests pass
stubs. Responses are validated with DRF serializers, and any failure
(missing key, timeout, bad JSON, wrong shape) degrades to the heuristic path.
"""
import json
import logging
import os
import re
from typing import Any, Dict, List, Optional, Tuple

from django.conf import settings
from rest_framework import serializers

logger = logging.getLogger(__name__)

STATUS_SKIPPED = 'skipped'
STATUS_SUCCESS = 'success'
STATUS_FAILED = 'failed'

TEMPERATURE = 0.2
MAX_TOKENS = 4000
ARTICLE_EXCERPT_LENGTH = 9000

AUDIT_SYSTEM_PROMPT = """You are an editorial SEO specialist reviewing internal links of a topical silo.
For each link, judge whether the anchor and its context match the intent of the target page.
Return valid JSON:
{"linkSuggestions": [{"occurrenceId": "...", "suggested_anchor": ["..."], "suggestion_note": "...",
  "intent_match": 0, "coherence_note": "...", "remove_link_if": "..."}]}
Rules: only use occurrenceId values you were given; intent_match is 0-100; anchors are 2 to 7 words."""

RERANK_SYSTEM_PROMPT = """You are an editorial SEO specialist choosing internal links for an article.
Prioritise the silo hierarchy (pillar/support/aux), semantic coherence and natural reading.
Avoid too many links to the same target.
Return valid JSON:
{"suggestions": [{"candidate_id": "...", "anchor_text": "...", "reason": "one sentence", "confidence": 0.0}]}
Rules: only use candidate_id values you were given; never invent anchors or targets; confidence is 0-1."""


class LinkAdviceSerializer(serializers.Serializer):
    occurrenceId = serializers.CharField()
    suggested_anchor = serializers.JSONField(required=False, allow_null=True)
    suggestion_note = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    intent_match = serializers.FloatField(required=False, allow_null=True, min_value=0, max_value=100)
    coherence_note = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    remove_link_if = serializers.CharField(required=False, allow_null=True, allow_blank=True)

    def validate_suggested_anchor(self, value):
        if value is None or isinstance(value, str):
            return value
        if isinstance(value, list) and all(isinstance(item, str) for item in value):
            return value
        raise serializers.ValidationError("Must be a string or a list of strings.")


class AuditAdviceSerializer(serializers.Serializer):
    linkSuggestions = LinkAdviceSerializer(many=True)


class RerankItemSerializer(serializers.Serializer):
    candidate_id = serializers.CharField()
    anchor_text = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    reason = serializers.CharField(required=False, allow_null=True, allow_blank=True, default='')
    confidence = serializers.FloatField(required=False, allow_null=True, min_value=0, max_value=1)


class RerankResponseSerializer(serializers.Serializer):
    suggestions = RerankItemSerializer(many=True)


class AuditAdvisor:
    """Capability: ``advise({"silo", "links"}) -> {"linkSuggestions": [...]}``."""

    def advise(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError


class SuggestionReranker:
    """Capability: ``rerank({"article", "candidates"}) -> {"suggestions": [...]}``."""

    def rerank(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError


def _clean_json(text: str) -> dict:
    """Strip markdown fences and parse JSON."""
    cleaned = re.sub(r'```(?:json)?\s*', '', text or '').strip()
    cleaned = cleaned.rstrip('`').strip()
    return json.loads(cleaned)


class OpenAIOracle:
    """Single bounded chat completion returning a JSON object."""

    def __init__(self, api_key: str = None, model: str = None, timeout: float = None):
        self.api_key = api_key or os.getenv('OPENAI_API_KEY')
        self.model = model or getattr(settings, 'LINK_ORACLE_MODEL', 'gpt-4o-mini')
        self.timeout = timeout or getattr(settings, 'LINK_ORACLE_TIMEOUT_SECONDS', 20)

    def complete(self, system_prompt: str, payload: Dict[str, Any]) -> dict:
        import openai
        client = openai.OpenAI(api_key=self.api_key, timeout=self.timeout, max_retries=0)
        response = client.chat.completions.create(
            model=self.model,
            temperature=TEMPERATURE,
            max_tokens=MAX_TOKENS,
            response_format={"type": "json_object"},
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": f"<data>\n{json.dumps(payload, ensure_ascii=False)}\n</data>"},
            ],
        )
        return _clean_json(response.choices[0].message.content)


class OpenAIAuditAdvisor(OpenAIOracle, AuditAdvisor):
    def advise(self, payload):
        return self.complete(AUDIT_SYSTEM_PROMPT, payload)


class OpenAISuggestionReranker(OpenAIOracle, SuggestionReranker):
    def rerank(self, payload):
        return self.complete(RERANK_SYSTEM_PROMPT, payload)


def _oracle_enabled() -> bool:
    return bool(getattr(settings, 'LINK_ORACLE_ENABLED', False) and os.getenv('OPENAI_API_KEY'))


def default_audit_advisor() -> Optional[AuditAdvisor]:
    return OpenAIAuditAdvisor() if _oracle_enabled() else None


def default_reranker() -> Optional[SuggestionReranker]:
    return OpenAISuggestionReranker() if _oracle_enabled() else None


def request_audit_advice(advisor: Optional[AuditAdvisor],
                         payload: Dict[str, Any]) -> Tuple[Dict[str, Dict[str, Any]], str]:
    """Advice keyed by occurrence id, plus the oracle status."""
    if advisor is None or not payload.get('links'):
        return {}, STATUS_SKIPPED
    try:
        raw = advisor.advise(payload)
    except Exception as e:
        logger.error(f"Audit advisor call failed: {e}")
        return {}, STATUS_FAILED

    serializer = AuditAdviceSerializer(data=raw if isinstance(raw, dict) else {})
    if not serializer.is_valid():
        logger.warning("Audit advisor returned an invalid payload: %s", serializer.errors)
        return {}, STATUS_FAILED

    offered = {str(link['occurrenceId']) for link in payload['links']}
    advice = {}
    for item in serializer.validated_data['linkSuggestions']:
        if item['occurrenceId'] in offered:
            advice[item['occurrenceId']] = dict(item)
    return advice, STATUS_SUCCESS


def request_rerank(reranker: Optional[SuggestionReranker],
                   payload: Dict[str, Any]) -> Tuple[List[Dict[str, Any]], str]:
    """Validated re-ranker records referencing offered candidates, plus the oracle status."""
    if reranker is None or not payload.get('candidates'):
        return [], STATUS_SKIPPED
    try:
        raw = reranker.rerank(payload)
    except Exception as e:
        logger.error(f"Suggestion re-ranker call failed: {e}")
        return [], STATUS_FAILED

    serializer = RerankResponseSerializer(data=raw if isinstance(raw, dict) else {})
    if not serializer.is_valid():
        logger.warning("Suggestion re-ranker returned an invalid payload: %s", serializer.errors)
        return [], STATUS_FAILED

    offered = {candidate['candidate_id'] for candidate in payload['candidates']}
    records = [dict(item) for item in serializer.validated_data['suggestions'] if item['candidate_id'] in offered]
    return records, STATUS_SUCCESS
