# Initial schema for enquiries, applications and their reference counters

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
            name='EnquiryCounter',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('year', models.PositiveSmallIntegerField()),
                ('month', models.PositiveSmallIntegerField()),
                ('last_value', models.PositiveIntegerField(default=0)),
            ],
            options={
                'verbose_name': 'Enquiry Counter',
                'verbose_name_plural': 'Enquiry Counters',
                'ordering': ['-year', '-month'],
                'constraints': [
                    models.UniqueConstraint(fields=('year', 'month'), name='uniq_enquiry_counter_scope'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ApplicationCounter',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('scope_key', models.CharField(max_length=40, unique=True)),
                ('last_value', models.PositiveIntegerField(default=0)),
            ],
            options={
                'verbose_name': 'Application Counter',
                'verbose_name_plural': 'Application Counters',
                'ordering': ['-scope_key'],
            },
        ),
        migrations.CreateModel(
            name='Enquiry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('enquiry_ref', models.CharField(editable=False, max_length=32, unique=True)),
                ('full_name', models.CharField(max_length=200)),
                ('email', models.EmailField(max_length=254)),
                ('phone', models.CharField(blank=True, max_length=30)),
                ('enquiry_type', models.CharField(choices=[
                    ('GENERAL', 'General'),
                    ('COURSE', 'Course information'),
                    ('APPLICATION_PROGRESS', 'Application progress'),
                    ('SCHOLARSHIP', 'Scholarship'),
                    ('FEES', 'Fees and funding'),
                    ('OTHER', 'Other'),
                ], default='GENERAL', max_length=30)),
                ('message', models.TextField()),
                ('details', models.JSONField(blank=True, default=dict)),
                ('status', models.CharField(choices=[('NEW', 'New'), ('IN_PROGRESS', 'In progress'), ('CLOSED', 'Closed')], default='NEW', max_length=20)),
                ('ip_address', models.GenericIPAddressField(blank=True, null=True)),
                ('user_agent', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Enquiry',
                'verbose_name_plural': 'Enquiries',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['email'], name='enquiry_email_idx'),
                    models.Index(fields=['enquiry_type', '-created_at'], name='enquiry_type_created_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Application',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('application_ref', models.CharField(editable=False, max_length=80, unique=True)),
                ('application_type', models.CharField(choices=[('STANDARD', 'Standard'), ('SCHOLARSHIP', 'Scholarship')], default='STANDARD', max_length=20)),
                ('course_name', models.CharField(max_length=255)),
                ('other_course_name', models.CharField(blank=True, max_length=255)),
                ('first_name', models.CharField(max_length=150)),
                ('last_name', models.CharField(max_length=150)),
                ('date_of_birth', models.DateField()),
                ('email', models.EmailField(max_length=254)),
                ('phone', models.CharField(max_length=30)),
                ('country_of_residence', models.CharField(max_length=100)),
                ('personal_statement', models.TextField()),
                ('status', models.CharField(choices=[
                    ('SUBMITTED', 'Submitted'),
                    ('IN_PROGRESS', 'In progress'),
                    ('OFFER_MADE', 'Offer made'),
                    ('GRANTED', 'Granted'),
                ], default='SUBMITTED', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='applications', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Application',
                'verbose_name_plural': 'Applications',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['status', '-created_at'], name='application_status_idx'),
                    models.Index(fields=['user', '-created_at'], name='application_user_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ApplicationAttachment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('file_name', models.CharField(max_length=255)),
                ('mime_type', models.CharField(max_length=100)),
                ('size_bytes', models.PositiveBigIntegerField()),
                ('s3_key', models.CharField(max_length=512)),
                ('s3_url', models.URLField(blank=True, max_length=1024)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('application', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='attachments', to='admissions.application')),
            ],
            options={
                'verbose_name': 'Application Attachment',
                'verbose_name_plural': 'Application Attachments',
                'ordering': ['created_at', 'id'],
            },
        ),
    ]
