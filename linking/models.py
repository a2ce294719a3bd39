"""
Link occurrences and their audits.

LinkOccurrence rows are derived from a page's stored HTML and replaced as a
block whenever the body changes. LinkAudit and SiloAudit rows are replaced
wholesale on every non-cached audit run.
"""
import uuid
from django.db import models

from silos.models import Silo, Page


class LinkOccurrence(models.Model):
    """One physical <a> element inside a source page's body."""
    TYPE_INTERNAL = 'INTERNAL'
    TYPE_EXTERNAL = 'EXTERNAL'
    TYPE_AFFILIATE = 'AFFILIATE'
    TYPE_CHOICES = [
        (TYPE_INTERNAL, 'Internal'),
        (TYPE_EXTERNAL, 'External'),
        (TYPE_AFFILIATE, 'Affiliate'),
    ]

    BUCKET_START = 'START'
    BUCKET_MID = 'MID'
    BUCKET_END = 'END'
    BUCKET_CHOICES = [
        (BUCKET_START, 'Start'),
        (BUCKET_MID, 'Middle'),
        (BUCKET_END, 'End'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    silo = models.ForeignKey(Silo, on_delete=models.CASCADE, related_name='link_occurrences')
    source_page = models.ForeignKey(Page, on_delete=models.CASCADE, related_name='outgoing_occurrences')
    target_page = models.ForeignKey(Page, on_delete=models.SET_NULL, related_name='incoming_occurrences',
        null=True, blank=True)
    anchor_text = models.CharField(max_length=255, blank=True)
    context_snippet = models.TextField(blank=True, null=True)
    position_bucket = models.CharField(max_length=10, choices=BUCKET_CHOICES, default=BUCKET_START)
    link_type = models.CharField(max_length=20, choices=TYPE_CHOICES, blank=True, null=True)
    href_normalized = models.CharField(max_length=500, blank=True)
    is_nofollow = models.BooleanField(default=False)
    is_sponsored = models.BooleanField(default=False)
    is_ugc = models.BooleanField(default=False)
    is_blank = models.BooleanField(default=False)
    start_index = models.IntegerField(null=True, blank=True)
    end_index = models.IntegerField(null=True, blank=True)
    occurrence_key = models.CharField(max_length=40, blank=True,
        help_text="sha1 of anchor|href|snippet")
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'link_occurrences'
        ordering = ['id']
        indexes = [
            models.Index(fields=['silo', 'source_page'], name='link_occ_silo_source_idx'),
            models.Index(fields=['silo', 'target_page'], name='link_occ_silo_target_idx'),
        ]

    def __str__(self):
        return f"{self.source_page_id} → {self.anchor_text} → {self.href_normalized}"


class LinkAudit(models.Model):
    LABEL_STRONG = 'STRONG'
    LABEL_OK = 'OK'
    LABEL_WEAK = 'WEAK'
    LABEL_CHOICES = [
        (LABEL_STRONG, 'Strong'),
        (LABEL_OK, 'OK'),
        (LABEL_WEAK, 'Weak'),
    ]

    ACTION_CHOICES = [
        ('KEEP', 'Keep'),
        ('CHANGE_ANCHOR', 'Change anchor'),
        ('CHANGE_TARGET', 'Change target'),
        ('REMOVE_LINK', 'Remove link'),
        ('ADD_INTERNAL_LINK', 'Add internal link'),
    ]

    silo = models.ForeignKey(Silo, on_delete=models.CASCADE, related_name='link_audits')
    occurrence = models.OneToOneField(LinkOccurrence, on_delete=models.CASCADE, related_name='audit')
    target_page = models.ForeignKey(Page, on_delete=models.SET_NULL, related_name='+',
        null=True, blank=True)
    score = models.IntegerField(default=0)
    label = models.CharField(max_length=10, choices=LABEL_CHOICES)
    reasons = models.JSONField(default=list, blank=True)
    suggested_anchor = models.CharField(max_length=500, blank=True, null=True)
    note = models.TextField(blank=True, null=True)
    spam_risk = models.IntegerField(default=0)
    action = models.CharField(max_length=30, choices=ACTION_CHOICES, default='KEEP')
    recommendation = models.TextField(blank=True)
    intent_match = models.IntegerField(null=True, blank=True)
    mismatch = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'link_audits'
        ordering = ['score']
        indexes = [
            models.Index(fields=['silo', 'label'], name='link_audits_silo_label_idx'),
        ]

    def __str__(self):
        return f"{self.occurrence_id} [{self.label} {self.score}]"


class SiloAudit(models.Model):
    STATUS_CHOICES = [
        ('OK', 'OK'),
        ('WARNING', 'Warning'),
        ('CRITICAL', 'Critical'),
    ]

    silo = models.ForeignKey(Silo, on_delete=models.CASCADE, related_name='audits')
    health_score = models.IntegerField(default=0)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES)
    issues = models.JSONField(default=list, blank=True)
    summary = models.JSONField(default=dict, blank=True)
    fingerprint = models.CharField(max_length=64, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'silo_audits'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.silo.name}: {self.health_score} ({self.status})"
