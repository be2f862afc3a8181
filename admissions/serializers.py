import re
from datetime import date

from django.conf import settings
from django.utils import timezone
from rest_framework import serializers

from uploads.limits import UploadLimits, check_file_batch

from .models import Application, ApplicationAttachment, Enquiry

EMAIL_SHAPE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')

DOB_PATTERNS = (
    re.compile(r'^(?P<day>\d{2})(?P<month>\d{2})(?P<year>\d{4})$'),
    re.compile(r'^(?P<day>\d{1,2})[/-](?P<month>\d{1,2})[/-](?P<year>\d{4})$'),
    re.compile(r'^(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})$'),
)

OTHER_COURSE_NAMES = ('OTHER', 'OTHERS')
ENQUIRY_DETAIL_FIELDS = {
    'courseInterestedIn': 'course_interested_in',
    'preferredStartDate': 'preferred_start_date',
    'studyMode': 'study_mode',
    'scholarshipType': 'scholarship_type',
    'applicationRef': 'application_ref',
    'paymentRef': 'payment_ref',
    'bestContactMethod': 'best_contact_method',
}


def parse_date_of_birth(value, today=None):
    """
    Accepts DDMMYYYY, DD/MM/YYYY, DD-MM-YYYY or YYYY-MM-DD. The date must
    exist (no 31/02 rollover), fall in 1900..this year and not be in the future.
    """
    if isinstance(value, date):
        candidate = value
    else:
        text = str(value or '').strip()
        match = next((m for m in (p.match(text) for p in DOB_PATTERNS) if m), None)
        if match is None:
            raise serializers.ValidationError('Enter your date of birth as DD/MM/YYYY.')
        year, month, day = int(match['year']), int(match['month']), int(match['day'])
        today = today or timezone.localdate()
        if not 1900 <= year <= today.year:
            raise serializers.ValidationError('Enter a valid year of birth.')
        try:
            candidate = date(year, month, day)
        except ValueError:
            raise serializers.ValidationError('Enter a real date of birth.')

    today = today or timezone.localdate()
    if candidate.year < 1900 or candidate > today:
        raise serializers.ValidationError('Date of birth cannot be in the future.')
    return candidate


class EmailShapeField(serializers.CharField):
    """Loose ``local@domain.tld`` check, lower-cased"""

    def to_internal_value(self, data):
        value = super().to_internal_value(data).strip().lower()
        if not EMAIL_SHAPE.match(value):
            raise serializers.ValidationError('Enter a valid email address.')
        return value


class EnquirySerializer(serializers.Serializer):
    fullName = serializers.CharField(min_length=2, max_length=200)
    email = EmailShapeField(max_length=254)
    phone = serializers.CharField(max_length=30, required=False, allow_blank=True, default='')
    enquiryType = serializers.ChoiceField(
        choices=[choice for choice, _ in Enquiry.ENQUIRY_TYPES],
        required=False,
        default='GENERAL',
    )
    message = serializers.CharField()

    courseInterestedIn = serializers.CharField(max_length=255, required=False, allow_blank=True)
    preferredStartDate = serializers.CharField(max_length=50, required=False, allow_blank=True)
    studyMode = serializers.CharField(max_length=50, required=False, allow_blank=True)
    scholarshipType = serializers.CharField(max_length=100, required=False, allow_blank=True)
    applicationRef = serializers.CharField(max_length=80, required=False, allow_blank=True)
    paymentRef = serializers.CharField(max_length=80, required=False, allow_blank=True)
    bestContactMethod = serializers.CharField(max_length=30, required=False, allow_blank=True)

    def validate_message(self, value):
        value = value.strip()
        low, high = settings.ENQUIRY_MESSAGE_MIN, settings.ENQUIRY_MESSAGE_MAX
        if len(value) < low:
            raise serializers.ValidationError(f'Please write at least {low} characters.')
        if len(value) > high:
            raise serializers.ValidationError(f'Please keep your message under {high} characters.')
        return value

    def validate(self, attrs):
        if attrs.get('enquiryType') == 'APPLICATION_PROGRESS':
            if len((attrs.get('applicationRef') or '').strip()) < 6:
                raise serializers.ValidationError({
                    'applicationRef': 'Enter your application reference to check progress.'
                })
        return attrs

    def details(self):
        """Optional extras, stored on the enquiry as ``details``"""
        return {
            key: self.validated_data[source].strip()
            for source, key in ENQUIRY_DETAIL_FIELDS.items()
            if (self.validated_data.get(source) or '').strip()
        }


class AttachmentInputSerializer(serializers.Serializer):
    fileName = serializers.CharField(max_length=255)
    mimeType = serializers.CharField(max_length=100)
    sizeBytes = serializers.IntegerField(min_value=1)
    s3Key = serializers.CharField(max_length=512)
    s3Url = serializers.URLField(max_length=1024, required=False, allow_blank=True, default='')


class ApplicationSerializer(serializers.Serializer):
    applicationType = serializers.ChoiceField(
        choices=[choice for choice, _ in Application.APPLICATION_TYPES],
        required=False,
        default=Application.TYPE_STANDARD,
    )
    courseName = serializers.CharField(max_length=255)
    otherCourseName = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')
    firstName = serializers.CharField(min_length=2, max_length=150)
    lastName = serializers.CharField(min_length=2, max_length=150)
    dateOfBirth = serializers.CharField()
    email = EmailShapeField(max_length=254)
    phone = serializers.CharField(max_length=30)
    countryOfResidence = serializers.CharField(min_length=2, max_length=100)
    personalStatement = serializers.CharField(min_length=50, max_length=5000)
    attachments = serializers.ListField(required=False, default=list)

    def validate_dateOfBirth(self, value):
        return parse_date_of_birth(value, today=self.context.get('today'))

    def validate_attachments(self, value):
        limits = self.context.get('limits') or UploadLimits.from_settings()
        errors = check_file_batch(value, limits, allow_empty=True)
        if errors:
            raise serializers.ValidationError(errors.get('batch') or next(iter(errors.values())))

        items = AttachmentInputSerializer(data=value, many=True)
        if not items.is_valid():
            raise serializers.ValidationError(items.errors)

        user = self.context.get('user')
        prefix = self.context.get('key_prefix')
        if user is not None and prefix is not None:
            expected = f"{prefix.strip('/')}/{user.pk}/"
            for item in items.validated_data:
                if not item['s3Key'].startswith(expected) or '..' in item['s3Key']:
                    raise serializers.ValidationError(f"{item['fileName']}: upload key does not belong to you.")
        return items.validated_data

    def validate(self, attrs):
        if attrs['courseName'].strip().upper() in OTHER_COURSE_NAMES:
            if len(attrs.get('otherCourseName', '').strip()) < 5:
                raise serializers.ValidationError({'otherCourseName': 'Please tell us which course you want to study.'})
        return attrs


class AttachmentSerializer(serializers.ModelSerializer):
    fileName = serializers.CharField(source='file_name')
    mimeType = serializers.CharField(source='mime_type')
    sizeBytes = serializers.IntegerField(source='size_bytes')
    s3Key = serializers.CharField(source='s3_key')
    createdAt = serializers.DateTimeField(source='created_at')

    class Meta:
        model = ApplicationAttachment
        fields = ['id', 'fileName', 'mimeType', 'sizeBytes', 's3Key', 'createdAt']
        read_only_fields = fields


class ApplicationSummarySerializer(serializers.ModelSerializer):
    applicationRef = serializers.CharField(source='application_ref')
    applicationType = serializers.CharField(source='application_type')
    courseName = serializers.CharField(source='display_course_name')
    firstName = serializers.CharField(source='first_name')
    lastName = serializers.CharField(source='last_name')
    createdAt = serializers.DateTimeField(source='created_at')
    updatedAt = serializers.DateTimeField(source='updated_at')
    attachmentCount = serializers.SerializerMethodField()

    class Meta:
        model = Application
        fields = [
            'id', 'applicationRef', 'applicationType', 'courseName', 'firstName', 'lastName',
            'email', 'status', 'attachmentCount', 'createdAt', 'updatedAt',
        ]
        read_only_fields = fields

    def get_attachmentCount(self, obj):
        return len(obj.attachments.all())


class ApplicationDetailSerializer(ApplicationSummarySerializer):
    otherCourseName = serializers.CharField(source='other_course_name')
    dateOfBirth = serializers.DateField(source='date_of_birth')
    countryOfResidence = serializers.CharField(source='country_of_residence')
    personalStatement = serializers.CharField(source='personal_statement')
    attachments = AttachmentSerializer(many=True)
    userId = serializers.UUIDField(source='user_id')

    class Meta(ApplicationSummarySerializer.Meta):
        fields = ApplicationSummarySerializer.Meta.fields + [
            'otherCourseName', 'dateOfBirth', 'phone', 'countryOfResidence',
            'personalStatement', 'attachments', 'userId',
        ]
        read_only_fields = fields


class EnquiryOutputSerializer(serializers.ModelSerializer):
    enquiryRef = serializers.CharField(source='enquiry_ref')
    fullName = serializers.CharField(source='full_name')
    enquiryType = serializers.CharField(source='enquiry_type')
    createdAt = serializers.DateTimeField(source='created_at')

    class Meta:
        model = Enquiry
        fields = [
            'id', 'enquiryRef', 'fullName', 'email', 'phone', 'enquiryType',
            'message', 'details', 'status', 'createdAt',
        ]
        read_only_fields = fields
