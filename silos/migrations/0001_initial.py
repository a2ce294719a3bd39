# Generated manually for the silo hierarchy models

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Silo',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=255)),
                ('slug', models.SlugField(max_length=255)),
                ('description', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='silos', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'silos',
                'ordering': ['name'],
                'unique_together': {('user', 'slug')},
            },
        ),
        migrations.CreateModel(
            name='Page',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=500)),
                ('slug', models.SlugField(max_length=500)),
                ('target_keyword', models.CharField(blank=True, help_text='Focus keyword the page should rank for', max_length=255, null=True)),
                ('entities', models.JSONField(blank=True, default=list, help_text='Topical terms/entities covered by the page')),
                ('content', models.TextField(blank=True, help_text='Stored HTML body')),
                ('canonical_path', models.CharField(blank=True, max_length=500, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('silo', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='pages', to='silos.silo')),
            ],
            options={
                'db_table': 'pages',
                'ordering': ['title'],
                'unique_together': {('silo', 'slug')},
                'indexes': [models.Index(fields=['silo', 'slug'], name='pages_silo_slug_idx')],
            },
        ),
        migrations.CreateModel(
            name='SiloPage',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('role', models.CharField(blank=True, choices=[('PILLAR', 'Pillar'), ('SUPPORT', 'Support'), ('AUX', 'Aux')], max_length=20, null=True)),
                ('position', models.IntegerField(blank=True, help_text='Ordering hint; missing or non-positive values sort last', null=True)),
                ('support_index', models.IntegerField(blank=True, help_text='Cache of the last normalization, not a source of truth', null=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('page', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='hierarchy_entry', to='silos.page')),
                ('silo', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='hierarchy', to='silos.silo')),
            ],
            options={
                'db_table': 'silo_pages',
                'ordering': ['position'],
                'indexes': [models.Index(fields=['silo', 'role'], name='silo_pages_silo_role_idx')],
            },
        ),
    ]
