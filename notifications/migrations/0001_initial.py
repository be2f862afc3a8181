# Initial schema for the outbound email log

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='EmailLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('recipient', models.EmailField(max_length=254)),
                ('subject', models.CharField(max_length=500)),
                ('message_type', models.CharField(choices=[
                    ('enquiry_admin', 'Enquiry Admin Notification'),
                    ('enquiry_ack', 'Enquiry Acknowledgement'),
                    ('application_confirmation', 'Application Confirmation'),
                    ('application_admin', 'Application Admin Notification'),
                    ('verify_email', 'Email Verification'),
                    ('newsletter_welcome', 'Newsletter Welcome'),
                    ('newsletter', 'Newsletter'),
                    ('general', 'General'),
                ], default='general', max_length=50)),
                ('body', models.TextField(blank=True)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('sent', 'Sent'), ('failed', 'Failed')], default='pending', max_length=20)),
                ('error_message', models.TextField(blank=True)),
                ('related_entity_type', models.CharField(blank=True, max_length=50)),
                ('related_entity_id', models.CharField(blank=True, max_length=255)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('sent_at', models.DateTimeField(blank=True, null=True)),
            ],
            options={
                'verbose_name': 'Email Log',
                'verbose_name_plural': 'Email Logs',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['recipient', '-created_at'], name='email_log_recipient_idx'),
                    models.Index(fields=['status', '-created_at'], name='email_log_status_idx'),
                ],
            },
        ),
    ]
