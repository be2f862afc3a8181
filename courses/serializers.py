from rest_framework import serializers

from .models import FEATURED_RANK_MAX, FEATURED_RANK_MIN, FEATURED_SECTIONS, Course, CourseFee


class CourseFeeSerializer(serializers.ModelSerializer):
    amountPence = serializers.IntegerField(source='amount_pence')
    isActive = serializers.BooleanField(source='is_active')

    class Meta:
        model = CourseFee
        fields = ['level', 'amountPence', 'currency', 'note', 'isActive']
        read_only_fields = fields


class CourseSerializer(serializers.ModelSerializer):
    shortDescription = serializers.CharField(source='short_description')
    studyMode = serializers.CharField(source='study_mode')
    fee = serializers.SerializerMethodField()

    class Meta:
        model = Course
        fields = [
            'id', 'slug', 'title', 'shortDescription', 'description', 'category',
            'level', 'duration', 'studyMode', 'fee',
        ]
        read_only_fields = fields

    def get_fee(self, obj):
        fee = obj.active_fee
        return CourseFeeSerializer(fee).data if fee else None


class AdminCourseSerializer(serializers.ModelSerializer):
    """Read/write shape used by the back office"""
    slug = serializers.SlugField(max_length=200, required=False, allow_blank=True)
    shortDescription = serializers.CharField(source='short_description', max_length=500, required=False, allow_blank=True)
    studyMode = serializers.CharField(source='study_mode', max_length=100, required=False, allow_blank=True)
    sortOrder = serializers.IntegerField(source='sort_order', required=False)
    isPublished = serializers.BooleanField(source='is_published', required=False)
    popularRank = serializers.IntegerField(source='popular_rank', read_only=True)
    level45Rank = serializers.IntegerField(source='level45_rank', read_only=True)
    level7Rank = serializers.IntegerField(source='level7_rank', read_only=True)
    fee = serializers.SerializerMethodField()
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = Course
        fields = [
            'id', 'slug', 'title', 'shortDescription', 'description', 'category', 'level',
            'duration', 'studyMode', 'sortOrder', 'isPublished', 'popularRank', 'level45Rank',
            'level7Rank', 'fee', 'createdAt', 'updatedAt',
        ]
        extra_kwargs = {
            'description': {'required': False, 'allow_blank': True},
            'category': {'required': False, 'allow_blank': True},
            'level': {'required': False, 'allow_blank': True},
            'duration': {'required': False, 'allow_blank': True},
        }
        # slug uniqueness is reported as a 409 by the view
        validators = []

    def get_fee(self, obj):
        try:
            return CourseFeeSerializer(obj.fee).data
        except CourseFee.DoesNotExist:
            return None

    def validate_title(self, value):
        value = value.strip()
        if len(value) < 3:
            raise serializers.ValidationError('Title must be at least 3 characters.')
        return value

    def validate(self, attrs):
        slug = (attrs.get('slug') or '').strip()
        if not slug and self.instance is None:
            slug = Course.slug_for(attrs.get('title'))
            if not slug:
                raise serializers.ValidationError({'slug': 'Could not derive a slug from the title.'})
        if slug:
            attrs['slug'] = slug
        else:
            attrs.pop('slug', None)
        return attrs


class CourseFeeInputSerializer(serializers.Serializer):
    level = serializers.ChoiceField(choices=[choice for choice, _ in CourseFee.LEVEL_CHOICES])
    amountPence = serializers.IntegerField(min_value=0)
    currency = serializers.CharField(max_length=3, required=False, default='GBP')
    note = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')
    isActive = serializers.BooleanField(required=False, default=True)

    def validate_currency(self, value):
        value = value.strip().upper()
        if len(value) != 3 or not value.isalpha():
            raise serializers.ValidationError('Currency must be a 3-letter code.')
        return value

    def validate(self, attrs):
        if attrs['isActive'] and attrs['amountPence'] <= 0:
            raise serializers.ValidationError({'amountPence': 'An active fee must be greater than zero.'})
        return attrs


class FeaturedRankSerializer(serializers.Serializer):
    courseId = serializers.IntegerField()
    section = serializers.ChoiceField(choices=list(FEATURED_SECTIONS))
    rank = serializers.IntegerField(min_value=FEATURED_RANK_MIN, max_value=FEATURED_RANK_MAX, allow_null=True)


class FeaturedCourseSerializer(serializers.ModelSerializer):
    popularRank = serializers.IntegerField(source='popular_rank')
    level45Rank = serializers.IntegerField(source='level45_rank')
    level7Rank = serializers.IntegerField(source='level7_rank')
    isPublished = serializers.BooleanField(source='is_published')

    class Meta:
        model = Course
        fields = ['id', 'slug', 'title', 'category', 'isPublished', 'popularRank', 'level45Rank', 'level7Rank']
        read_only_fields = fields
