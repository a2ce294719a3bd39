# Generated manually for link occurrences and audits

from django.db import migrations, models
import django.db.models.deletion
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('silos', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='LinkOccurrence',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('anchor_text', models.CharField(blank=True, max_length=255)),
                ('context_snippet', models.TextField(blank=True, null=True)),
                ('position_bucket', models.CharField(choices=[('START', 'Start'), ('MID', 'Middle'), ('END', 'End')], default='START', max_length=10)),
                ('link_type', models.CharField(blank=True, choices=[('INTERNAL', 'Internal'), ('EXTERNAL', 'External'), ('AFFILIATE', 'Affiliate')], max_length=20, null=True)),
                ('href_normalized', models.CharField(blank=True, max_length=500)),
                ('is_nofollow', models.BooleanField(default=False)),
                ('is_sponsored', models.BooleanField(default=False)),
                ('is_ugc', models.BooleanField(default=False)),
                ('is_blank', models.BooleanField(default=False)),
                ('start_index', models.IntegerField(blank=True, null=True)),
                ('end_index', models.IntegerField(blank=True, null=True)),
                ('occurrence_key', models.CharField(blank=True, help_text='sha1 of anchor|href|snippet', max_length=40)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('silo', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='link_occurrences', to='silos.silo')),
                ('source_page', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='outgoing_occurrences', to='silos.page')),
                ('target_page', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='incoming_occurrences', to='silos.page')),
            ],
            options={
                'db_table': 'link_occurrences',
                'ordering': ['id'],
                'indexes': [
                    models.Index(fields=['silo', 'source_page'], name='link_occ_silo_source_idx'),
                    models.Index(fields=['silo', 'target_page'], name='link_occ_silo_target_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='LinkAudit',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('score', models.IntegerField(default=0)),
                ('label', models.CharField(choices=[('STRONG', 'Strong'), ('OK', 'OK'), ('WEAK', 'Weak')], max_length=10)),
                ('reasons', models.JSONField(blank=True, default=list)),
                ('suggested_anchor', models.CharField(blank=True, max_length=500, null=True)),
                ('note', models.TextField(blank=True, null=True)),
                ('spam_risk', models.IntegerField(default=0)),
                ('action', models.CharField(choices=[('KEEP', 'Keep'), ('CHANGE_ANCHOR', 'Change anchor'), ('CHANGE_TARGET', 'Change target'), ('REMOVE_LINK', 'Remove link'), ('ADD_INTERNAL_LINK', 'Add internal link')], default='KEEP', max_length=30)),
                ('recommendation', models.TextField(blank=True)),
                ('intent_match', models.IntegerField(blank=True, null=True)),
                ('mismatch', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('occurrence', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='audit', to='linking.linkoccurrence')),
                ('silo', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='link_audits', to='silos.silo')),
                ('target_page', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='silos.page')),
            ],
            options={
                'db_table': 'link_audits',
                'ordering': ['score'],
                'indexes': [
                    models.Index(fields=['silo', 'label'], name='link_audits_silo_label_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='SiloAudit',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('health_score', models.IntegerField(default=0)),
                ('status', models.CharField(choices=[('OK', 'OK'), ('WARNING', 'Warning'), ('CRITICAL', 'Critical')], max_length=10)),
                ('issues', models.JSONField(blank=True, default=list)),
                ('summary', models.JSONField(blank=True, default=dict)),
                ('fingerprint', models.CharField(db_index=True, max_length=64)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('silo', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='audits', to='silos.silo')),
            ],
            options={
                'db_table': 'silo_audits',
                'ordering': ['-created_at'],
            },
        ),
    ]
