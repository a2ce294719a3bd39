"""
Silo, Page and hierarchy models.

A silo is one Pillar page, a linear chain of Support pages and optional Aux
pages. The stored role/position rows are raw input: the canonical hierarchy is
recomputed on every audit or suggestion run (see silos.hierarchy).
"""
import uuid
from django.conf import settings
from django.db import models


class Silo(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='silos'
    )
    name = models.CharField(max_length=255)
    slug = models.SlugField(max_length=255)
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'silos'
        ordering = ['name']
        unique_together = [('user', 'slug')]

    def __str__(self):
        return self.name


class Page(models.Model):
    silo = models.ForeignKey(Silo, on_delete=models.CASCADE, related_name='pages')
    title = models.CharField(max_length=500)
    slug = models.SlugField(max_length=500)
    target_keyword = models.CharField(max_length=255, blank=True, null=True,
        help_text="Focus keyword the page should rank for")
    entities = models.JSONField(default=list, blank=True,
        help_text="Topical terms/entities covered by the page")
    content = models.TextField(blank=True, help_text="Stored HTML body")
    canonical_path = models.CharField(max_length=500, blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'pages'
        ordering = ['title']
        unique_together = [('silo', 'slug')]
        indexes = [
            models.Index(fields=['silo', 'slug'], name='pages_silo_slug_idx'),
        ]

    def __str__(self):
        return f"{self.title} ({self.silo.name})"

    @property
    def path(self):
        return self.canonical_path or f"/{self.silo.slug}/{self.slug}"


class SiloPage(models.Model):
    """Raw hierarchy row: the role and ordering hint an editor assigned to a page."""
    ROLE_PILLAR = 'PILLAR'
    ROLE_SUPPORT = 'SUPPORT'
    ROLE_AUX = 'AUX'
    ROLE_CHOICES = [
        (ROLE_PILLAR, 'Pillar'),
        (ROLE_SUPPORT, 'Support'),
        (ROLE_AUX, 'Aux'),
    ]

    silo = models.ForeignKey(Silo, on_delete=models.CASCADE, related_name='hierarchy')
    page = models.OneToOneField(Page, on_delete=models.CASCADE, related_name='hierarchy_entry')
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, blank=True, null=True)
    position = models.IntegerField(null=True, blank=True,
        help_text="Ordering hint; missing or non-positive values sort last")
    support_index = models.IntegerField(null=True, blank=True,
        help_text="Cache of the last normalization, not a source of truth")
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'silo_pages'
        ordering = ['position']
        indexes = [
            models.Index(fields=['silo', 'role'], name='silo_pages_silo_role_idx'),
        ]

    def __str__(self):
        return f"{self.page.title} [{self.role or 'unassigned'}]"
