from django.contrib import admin
from .models import Silo, Page, SiloPage


@admin.register(Silo)
class SiloAdmin(admin.ModelAdmin):
    list_display = ('name', 'slug', 'user', 'created_at')
    search_fields = ('name', 'slug', 'user__email')
    readonly_fields = ('created_at', 'updated_at')


@admin.register(Page)
class PageAdmin(admin.ModelAdmin):
    list_display = ('title', 'silo', 'slug', 'target_keyword', 'updated_at')
    list_filter = ('silo',)
    search_fields = ('title', 'slug', 'target_keyword')
    readonly_fields = ('created_at', 'updated_at')


@admin.register(SiloPage)
class SiloPageAdmin(admin.ModelAdmin):
    list_display = ('page', 'silo', 'role', 'position', 'support_index')
    list_filter = ('role', 'silo')
    readonly_fields = ('support_index', 'updated_at')
