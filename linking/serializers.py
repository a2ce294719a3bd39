"""
Serializers for link occurrences, audits and link suggestion requests.
"""
from rest_framework import serializers
from .models import LinkAudit, LinkOccurrence, SiloAudit

MIN_TEXT_LENGTH = 80
MAX_TEXT_LENGTH = 120000
MIN_SUGGESTIONS = 3
MAX_SUGGESTIONS = 15
DEFAULT_SUGGESTIONS = 8
MAX_EXISTING_LINKS = 400


class LinkAuditSerializer(serializers.ModelSerializer):
    class Meta:
        model = LinkAudit
        fields = (
            'score', 'label', 'reasons', 'suggested_anchor', 'note', 'spam_risk',
            'action', 'recommendation', 'intent_match', 'mismatch', 'created_at',
        )


class LinkOccurrenceSerializer(serializers.ModelSerializer):
    """Occurrence with its latest audit (null until the silo is audited)."""
    audit = serializers.SerializerMethodField()

    class Meta:
        model = LinkOccurrence
        fields = (
            'id', 'source_page_id', 'target_page_id', 'anchor_text', 'context_snippet',
            'position_bucket', 'link_type', 'href_normalized', 'is_nofollow', 'is_sponsored',
            'is_ugc', 'is_blank', 'start_index', 'end_index', 'updated_at', 'audit',
        )

    def get_audit(self, obj):
        try:
            audit = obj.audit
        except LinkAudit.DoesNotExist:
            return None
        return LinkAuditSerializer(audit).data


class SiloAuditSerializer(serializers.ModelSerializer):
    class Meta:
        model = SiloAudit
        fields = ('id', 'silo_id', 'health_score', 'status', 'issues', 'summary', 'fingerprint', 'created_at')


class AuditRequestSerializer(serializers.Serializer):
    force = serializers.BooleanField(required=False, default=False)


class ExistingLinkSerializer(serializers.Serializer):
    """A link already present in the article being edited."""
    href = serializers.CharField(max_length=800, required=False, allow_blank=True)
    page_id = serializers.IntegerField(required=False, allow_null=True)
    type = serializers.CharField(max_length=40, required=False, allow_blank=True)


class LinkSuggestionRequestSerializer(serializers.Serializer):
    silo_id = serializers.UUIDField()
    page_id = serializers.IntegerField(required=False, allow_null=True)
    title = serializers.CharField(max_length=220, required=False, allow_blank=True, default='')
    keyword = serializers.CharField(max_length=180, required=False, allow_blank=True, default='')
    text = serializers.CharField(min_length=MIN_TEXT_LENGTH, max_length=MAX_TEXT_LENGTH, trim_whitespace=False)
    existing_links = ExistingLinkSerializer(many=True, required=False, default=list)
    max_suggestions = serializers.IntegerField(required=False, allow_null=True, default=DEFAULT_SUGGESTIONS)

    def validate_existing_links(self, value):
        if len(value) > MAX_EXISTING_LINKS:
            raise serializers.ValidationError(f"Maximum {MAX_EXISTING_LINKS} existing links allowed")
        return value

    def validate_max_suggestions(self, value):
        """Out-of-range values are clamped, not rejected."""
        if value is None:
            return DEFAULT_SUGGESTIONS
        return min(MAX_SUGGESTIONS, max(MIN_SUGGESTIONS, value))
