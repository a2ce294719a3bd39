"""
Serializers for Silo, Page and hierarchy rows.
"""
from rest_framework import serializers
from .models import Silo, Page, SiloPage


class SiloSerializer(serializers.ModelSerializer):
    page_count = serializers.SerializerMethodField()

    class Meta:
        model = Silo
        fields = ('id', 'name', 'slug', 'description', 'page_count', 'created_at', 'updated_at')
        read_only_fields = ('id', 'created_at', 'updated_at')

    def get_page_count(self, obj):
        return obj.pages.count()


class PageListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for page lists (no body)."""

    class Meta:
        model = Page
        fields = ('id', 'title', 'slug', 'target_keyword', 'entities', 'updated_at')


class HierarchyUpdateSerializer(serializers.Serializer):
    """One raw (page, role, position) assignment sent by the editor."""
    page_id = serializers.IntegerField()
    role = serializers.ChoiceField(choices=SiloPage.ROLE_CHOICES, allow_null=True, required=False)
    position = serializers.IntegerField(allow_null=True, required=False)


class HierarchyPayloadSerializer(serializers.Serializer):
    """Body of a hierarchy update: { "pages": [...] }."""
    pages = HierarchyUpdateSerializer(many=True, default=list)
