# Initial schema for the append-only audit trail

import django.core.serializers.json
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='AuditEvent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('action', models.CharField(choices=[
                    ('USER_PROMOTE_ADMIN', 'Promoted user to admin'),
                    ('USER_DEMOTE_ADMIN', 'Demoted admin to user'),
                    ('USER_PROMOTE_SUPERADMIN', 'Promoted user to super admin'),
                    ('USER_DEMOTE_SUPERADMIN', 'Demoted super admin'),
                    ('USER_EMAIL_VERIFIED_BY_ADMIN', 'Email verified manually'),
                    ('SUPERADMIN_SECOND_FACTOR_SET', 'Second factor configured'),
                    ('HOMEPAGE_FEATURED_UPDATED', 'Homepage ranking changed'),
                    ('APPLICATION_STATUS_CHANGED', 'Application status changed'),
                    ('COURSE_CREATED', 'Course created'),
                    ('COURSE_UPDATED', 'Course updated'),
                    ('COURSE_DELETED', 'Course deleted'),
                    ('COURSE_PUBLISH_TOGGLED', 'Course publish state changed'),
                    ('COURSE_FEE_UPSERTED', 'Course fee saved'),
                    ('NEWSLETTER_SENT', 'Newsletter sent'),
                    ('NEWSLETTER_SUBSCRIBER_UPDATED', 'Subscriber updated'),
                    ('NEWSLETTER_SUBSCRIBER_DELETED', 'Subscriber deleted'),
                ], db_index=True, max_length=64)),
                ('target_type', models.CharField(blank=True, max_length=50)),
                ('target_id', models.CharField(blank=True, max_length=255)),
                ('before', models.JSONField(blank=True, encoder=django.core.serializers.json.DjangoJSONEncoder, null=True)),
                ('after', models.JSONField(blank=True, encoder=django.core.serializers.json.DjangoJSONEncoder, null=True)),
                ('meta', models.JSONField(blank=True, encoder=django.core.serializers.json.DjangoJSONEncoder, null=True)),
                ('ip_address', models.GenericIPAddressField(blank=True, null=True)),
                ('user_agent', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('actor', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='audit_events', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Audit Event',
                'verbose_name_plural': 'Audit Events',
                'ordering': ['-created_at', '-id'],
                'indexes': [
                    models.Index(fields=['target_type', 'target_id'], name='audit_target_idx'),
                    models.Index(fields=['actor', '-created_at'], name='audit_actor_created_idx'),
                ],
            },
        ),
    ]
