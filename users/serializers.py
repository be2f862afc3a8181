import re

from django.utils import timezone
from rest_framework import serializers

from .models import User

PHONE_DIGITS = re.compile(r'\D')


class UserSerializer(serializers.ModelSerializer):
    firstName = serializers.CharField(source='first_name')
    lastName = serializers.CharField(source='last_name')
    phone = serializers.CharField(source='phone_number')
    dateOfBirth = serializers.DateField(source='date_of_birth')
    isAdmin = serializers.BooleanField(source='is_admin')
    isSuperAdmin = serializers.BooleanField(source='is_super_admin')
    emailVerified = serializers.BooleanField(source='is_email_verified')
    emailVerifiedAt = serializers.DateTimeField(source='email_verified_at')
    createdAt = serializers.DateTimeField(source='created_at')

    class Meta:
        model = User
        fields = [
            'id', 'email', 'firstName', 'lastName', 'phone', 'dateOfBirth', 'role',
            'isAdmin', 'isSuperAdmin', 'emailVerified', 'emailVerifiedAt', 'createdAt',
        ]
        read_only_fields = fields


class AdminUserSerializer(UserSerializer):
    """User row as shown in the back office"""
    hasSecondFactor = serializers.BooleanField(source='has_second_factor')
    isActive = serializers.BooleanField(source='is_active')
    lastLogin = serializers.DateTimeField(source='last_login')

    class Meta(UserSerializer.Meta):
        fields = UserSerializer.Meta.fields + ['hasSecondFactor', 'isActive', 'lastLogin']
        read_only_fields = fields


class RegisterSerializer(serializers.Serializer):
    firstName = serializers.CharField(min_length=2, max_length=150, trim_whitespace=True)
    lastName = serializers.CharField(min_length=2, max_length=150, trim_whitespace=True)
    email = serializers.EmailField()
    phone = serializers.CharField(max_length=30)
    dateOfBirth = serializers.DateField()
    password = serializers.CharField(min_length=8, max_length=128, write_only=True, trim_whitespace=False)

    def validate_email(self, value):
        return value.strip().lower()

    def validate_phone(self, value):
        digits = PHONE_DIGITS.sub('', value)
        if not 10 <= len(digits) <= 15:
            raise serializers.ValidationError('Enter a phone number with 10 to 15 digits.')
        return value.strip()

    def validate_dateOfBirth(self, value):
        if value >= timezone.localdate():
            raise serializers.ValidationError('Date of birth must be in the past.')
        return value


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(trim_whitespace=False)

    def validate_email(self, value):
        return value.strip().lower()


class PasswordResetRequestSerializer(serializers.Serializer):
    email = serializers.EmailField()

    def validate_email(self, value):
        return value.strip().lower()


class PasswordResetSerializer(serializers.Serializer):
    token = serializers.CharField(max_length=200)
    password = serializers.CharField(min_length=8, max_length=200, write_only=True, trim_whitespace=False)


class RoleChangeSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=[choice for choice, _ in User.ROLES])


class SecondFactorSerializer(serializers.Serializer):
    password = serializers.CharField(min_length=8, max_length=128, trim_whitespace=False)
