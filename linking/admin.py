from django.contrib import admin
from .models import LinkOccurrence, LinkAudit, SiloAudit


@admin.register(LinkOccurrence)
class LinkOccurrenceAdmin(admin.ModelAdmin):
    list_display = ('anchor_text', 'source_page', 'target_page', 'link_type', 'position_bucket', 'updated_at')
    list_filter = ('link_type', 'position_bucket', 'silo')
    search_fields = ('anchor_text', 'href_normalized', 'source_page__title')
    readonly_fields = ('occurrence_key', 'updated_at')


@admin.register(LinkAudit)
class LinkAuditAdmin(admin.ModelAdmin):
    list_display = ('occurrence', 'silo', 'score', 'label', 'action', 'spam_risk', 'created_at')
    list_filter = ('label', 'action', 'silo')
    search_fields = ('occurrence__anchor_text', 'suggested_anchor')
    readonly_fields = ('created_at',)


@admin.register(SiloAudit)
class SiloAuditAdmin(admin.ModelAdmin):
    list_display = ('silo', 'health_score', 'status', 'created_at')
    list_filter = ('status',)
    readonly_fields = ('fingerprint', 'created_at')
