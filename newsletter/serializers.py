from rest_framework import serializers

from admissions.serializers import EmailShapeField

from .models import NewsletterSubscriber

MODE_ALL_ACTIVE = 'ALL_ACTIVE'
MODE_SELECTED = 'SELECTED'
MODE_INDIVIDUAL = 'INDIVIDUAL'
SEND_MODES = (MODE_ALL_ACTIVE, MODE_SELECTED, MODE_INDIVIDUAL)


class SubscribeSerializer(serializers.Serializer):
    email = EmailShapeField(max_length=254)
    name = serializers.CharField(max_length=200, required=False, allow_blank=True, default='')
    source = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')


class SubscriberSerializer(serializers.ModelSerializer):
    isActive = serializers.BooleanField(source='is_active')
    subscribedAt = serializers.DateTimeField(source='subscribed_at')
    unsubscribedAt = serializers.DateTimeField(source='unsubscribed_at')

    class Meta:
        model = NewsletterSubscriber
        fields = ['id', 'email', 'name', 'source', 'isActive', 'subscribedAt', 'unsubscribedAt']
        read_only_fields = fields


class SubscriberUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200, required=False, allow_blank=True)
    isActive = serializers.BooleanField(required=False)


class NewsletterSendSerializer(serializers.Serializer):
    mode = serializers.ChoiceField(choices=SEND_MODES)
    subject = serializers.CharField(min_length=3, max_length=255)
    html = serializers.CharField(min_length=10)
    ids = serializers.ListField(child=serializers.IntegerField(), required=False, default=list)
    email = EmailShapeField(max_length=254, required=False)

    def validate(self, attrs):
        if attrs['mode'] == MODE_SELECTED and not attrs['ids']:
            raise serializers.ValidationError({'ids': 'Select at least one subscriber.'})
        if attrs['mode'] == MODE_INDIVIDUAL and not attrs.get('email'):
            raise serializers.ValidationError({'email': 'An email address is required.'})
        return attrs
