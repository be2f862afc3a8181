# Password reset emails in the outbound log

from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('notifications', '0001_initial'),
    ]

    operations = [
        migrations.AlterField(
            model_name='emaillog',
            name='message_type',
            field=models.CharField(choices=[
                ('enquiry_admin', 'Enquiry Admin Notification'),
                ('enquiry_ack', 'Enquiry Acknowledgement'),
                ('application_confirmation', 'Application Confirmation'),
                ('application_admin', 'Application Admin Notification'),
                ('verify_email', 'Email Verification'),
                ('password_reset', 'Password Reset'),
                ('newsletter_welcome', 'Newsletter Welcome'),
                ('newsletter', 'Newsletter'),
                ('general', 'General'),
            ], default='general', max_length=50),
        ),
    ]
