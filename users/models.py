# users/models.py
import hashlib
import secrets
import uuid
from datetime import timedelta

from django.conf import settings
from django.contrib.auth.hashers import check_password, make_password
from django.contrib.auth.models import AbstractUser
from django.db import models
from django.utils import timezone

from .managers import UserManager


class User(AbstractUser):
    """Account holder; email is the login identifier"""
    ROLE_USER = 'USER'
    ROLE_ADMIN = 'ADMIN'
    ROLE_SUPER_ADMIN = 'SUPER_ADMIN'
    ROLES = [
        (ROLE_USER, 'User'),
        (ROLE_ADMIN, 'Administrator'),
        (ROLE_SUPER_ADMIN, 'Super Administrator'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    username = None
    email = models.EmailField(unique=True)
    phone_number = models.CharField(max_length=20, blank=True)
    date_of_birth = models.DateField(blank=True, null=True)
    is_admin = models.BooleanField(default=False)
    is_super_admin = models.BooleanField(default=False)
    email_verified_at = models.DateTimeField(blank=True, null=True)
    admin_second_factor_hash = models.CharField(max_length=128, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['first_name', 'last_name']

    objects = UserManager()

    class Meta:
        verbose_name = "User"
        verbose_name_plural = "Users"
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['is_admin', 'is_super_admin'], name='users_role_flags_idx'),
        ]

    def __str__(self):
        return f"{self.get_full_name()} ({self.email})"

    def save(self, *args, **kwargs):
        # A super admin is always an admin for access checks
        if self.is_super_admin:
            self.is_admin = True
        super().save(*args, **kwargs)

    @property
    def role(self):
        if self.is_super_admin:
            return self.ROLE_SUPER_ADMIN
        if self.is_admin:
            return self.ROLE_ADMIN
        return self.ROLE_USER

    def apply_role(self, role):
        """Set the role flags for ``role`` without saving"""
        if role not in dict(self.ROLES):
            raise ValueError(f"Unknown role: {role}")
        self.is_super_admin = role == self.ROLE_SUPER_ADMIN
        self.is_admin = role in (self.ROLE_ADMIN, self.ROLE_SUPER_ADMIN)

    @property
    def is_email_verified(self):
        return self.email_verified_at is not None

    @property
    def has_second_factor(self):
        return bool(self.admin_second_factor_hash)

    def set_second_factor(self, raw_password):
        self.admin_second_factor_hash = make_password(raw_password)

    def check_second_factor(self, raw_password):
        if not self.admin_second_factor_hash or not raw_password:
            return False
        return check_password(raw_password, self.admin_second_factor_hash)


def hash_token(raw_token):
    return hashlib.sha256(raw_token.encode('utf-8')).hexdigest()


class EmailVerificationToken(models.Model):
    """Single-use email verification token; only the sha256 digest is stored"""
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='verification_tokens')
    token_hash = models.CharField(max_length=64, unique=True)
    expires_at = models.DateTimeField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']
        verbose_name = "Email Verification Token"
        verbose_name_plural = "Email Verification Tokens"

    def __str__(self):
        return f"Verification token for {self.user.email} (expires {self.expires_at:%Y-%m-%d %H:%M})"

    @property
    def is_expired(self):
        return self.expires_at <= timezone.now()

    @classmethod
    def issue(cls, user):
        """Create a token for ``user`` and return ``(token_row, raw_token)``"""
        raw_token = secrets.token_urlsafe(32)
        ttl = timedelta(hours=settings.EMAIL_VERIFICATION_TTL_HOURS)
        token = cls.objects.create(
            user=user,
            token_hash=hash_token(raw_token),
            expires_at=timezone.now() + ttl,
        )
        return token, raw_token


def reset_token_ttl_minutes():
    minutes = settings.PASSWORD_RESET_TTL_MINUTES
    if minutes <= 0:
        minutes = 10
    return max(1, min(minutes, 24 * 60))


class PasswordResetToken(models.Model):
    """Single-use password reset token; only the sha256 digest is stored"""
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='password_reset_tokens')
    token_hash = models.CharField(max_length=64, unique=True)
    expires_at = models.DateTimeField()
    used_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']
        verbose_name = "Password Reset Token"
        verbose_name_plural = "Password Reset Tokens"

    def __str__(self):
        return f"Password reset token for {self.user.email} (expires {self.expires_at:%Y-%m-%d %H:%M})"

    @property
    def is_expired(self):
        return self.expires_at <= timezone.now()

    @property
    def is_usable(self):
        return self.used_at is None and not self.is_expired

    @classmethod
    def issue(cls, user):
        raw_token = secrets.token_urlsafe(32)
        ttl = timedelta(minutes=reset_token_ttl_minutes())
        token = cls.objects.create(
            user=user,
            token_hash=hash_token(raw_token),
            expires_at=timezone.now() + ttl,
        )
        return token, raw_token


class PasswordResetAttempt(models.Model):
    """One row per reset request, whether or not the address has an account"""
    user = models.ForeignKey(User, on_delete=models.SET_NULL, blank=True, null=True,
                             related_name='password_reset_attempts')
    email = models.EmailField()
    ip_address = models.GenericIPAddressField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['email', 'created_at'], name='users_reset_email_idx'),
            models.Index(fields=['ip_address', 'created_at'], name='users_reset_ip_idx'),
        ]

    def __str__(self):
        return f"Password reset request for {self.email} at {self.created_at:%Y-%m-%d %H:%M}"
